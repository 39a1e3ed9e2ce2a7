from .trade_normalizer import build_manual_trade, compute_profit_amount, compute_profit_rate, normalize_trade
from .performance import build_equity_curve, compute_performance, max_drawdown, trades_to_frame
from .trade_log import filter_trades, recent_trades, sort_trades
