from .bachelier import call_price, put_price, straddle_atm

__all__ = ["call_price", "put_price", "straddle_atm"]
