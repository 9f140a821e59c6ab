# --- Global log sanitizer to stop record-dump spam ------------------------------
import logging, re

# A dict/list literal that carries product rows, e.g. "[{'id': 'id-1', 'sku': ..."
_RECORD_DUMP_RE = re.compile(r"(?s)[\[{]\s*['\"](id|sku|parent_id)['\"]\s*:")
_SKU_RE = re.compile(r"['\"]sku['\"]\s*:\s*['\"]([^'\"]*)['\"]")


def _summarize_records(s: str, limit: int = 200, max_skus: int = 5) -> str:
    skus = _SKU_RE.findall(s)
    if skus:
        shown = ", ".join(skus[:max_skus])
        more = f" +{len(skus) - max_skus} more" if len(skus) > max_skus else ""
        return f"{s[:80]}... [records: {shown}{more}; {len(s)} chars trimmed]"
    return f"{s[:limit]}... [{len(s)} chars trimmed]"


class _RecordTrimFilter(logging.Filter):
    """If a log message contains a large product record dump, replace it with a short summary."""
    def __init__(self, threshold: int = 500):
        super().__init__()
        self.threshold = threshold

    def filter(self, record: logging.LogRecord) -> bool:
        try:
            msg = record.getMessage()
        except (TypeError, ValueError):
            return True
        if isinstance(msg, str) and len(msg) > self.threshold and _RECORD_DUMP_RE.search(msg):
            record.msg = _summarize_records(msg)
            record.args = ()
        return True


def install_record_trim_filter(names=("", "uvicorn", "uvicorn.error")) -> None:
    for name in names:
        lg = logging.getLogger(name)
        if not any(isinstance(f, _RecordTrimFilter) for f in lg.filters):
            lg.addFilter(_RecordTrimFilter())
# --------------------------------------------------------------------------------
