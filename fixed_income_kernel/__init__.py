"""
Fixed Income Kernel

Decimal-only numerical core shared by the fixed-income domain modules:
- decimal_math: exp / ln / sqrt / pow / nth_root without binary floating point
- curves: curve object + linear and log-DF interpolation
- solver: Newton-Raphson root finder + per-instrument SolverConfig presets
- discount: compound/discount factors, annuities + schedule present value
- yields: YTM / yield-to-call / IRR / XIRR / Z-spread / forward and par rates / spot bootstrap
- schedule: cashflow schedules + builders
- rates: CPR/SMM and compounding-convention conversions
- risk: duration / convexity / DV01 / spread duration
- portfolio: batch revaluation and yield solving over many schedules
- errors: InvalidInput / DomainError / DivisionByZero / ConvergenceFailure

Domain modules should import from this package.
"""
