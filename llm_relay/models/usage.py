"""Running usage totals for one stream, and what they cost."""

from dataclasses import dataclass

from llm_relay.models.catalog import ModelInfo

_PER_MILLION = 1_000_000


@dataclass
class UsageTotals:
    input_tokens: int = 0
    output_tokens: int = 0
    cache_write_tokens: int = 0
    cache_read_tokens: int = 0

    def add(self, event) -> None:
        """Fold a UsageDelta into the totals."""
        self.input_tokens += event.input_tokens
        self.output_tokens += event.output_tokens
        self.cache_write_tokens += event.cache_write_tokens or 0
        self.cache_read_tokens += event.cache_read_tokens or 0

    def cost(self, info: ModelInfo) -> float:
        """Estimated USD cost. Cache reads/writes are billed apart from input."""
        total = (
            info.input_price * self.input_tokens
            + info.output_price * self.output_tokens
            + info.cache_writes_price * self.cache_write_tokens
            + info.cache_reads_price * self.cache_read_tokens
        )
        return total / _PER_MILLION

    def to_dict(self) -> dict:
        return {
            "input_tokens": self.input_tokens,
            "output_tokens": self.output_tokens,
            "cache_write_tokens": self.cache_write_tokens,
            "cache_read_tokens": self.cache_read_tokens,
        }
