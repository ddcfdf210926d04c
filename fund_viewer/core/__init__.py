"""
Core Module

Foundational pieces shared by every layer:
- config: environment-driven settings
- exceptions: error hierarchy of the valuation engine
"""

__all__ = ['config', 'exceptions']
