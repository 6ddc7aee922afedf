"""Evidence fusion layer.

Modules:
  odds        — logit / sigmoid / probability clamping
  cluster     — source-family clustering and the m_eff redundancy discount
  aggregator  — neutral (market-unaware) posterior with influence breakdown
  market      — log-odds market blend behind the neutral/aware two-phase API
  refiner     — critique-driven filtering and second pass
"""
