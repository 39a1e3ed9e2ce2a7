from .prompts import build_recent_summary_prompt, build_single_trade_prompt
from .summary import AnthropicSummaryService, generate_review_draft, generate_trade_summary
