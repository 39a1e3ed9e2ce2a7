from .text_normalizer import NormalizedText, normalize_text
from .field_extractors import extract_from_text, extract_trade_fields
from .trade_segmenter import NoSplit, Split, segment_trades
from .csv_importer import TradeCSVImporter, import_trades_csv, resolve_columns
from .screenshot_importer import ScreenshotImporter, extract_trades, import_trades_from_text
