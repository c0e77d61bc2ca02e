from common import llm
from common.ids import generate_id
from common.jsonio import load_json, atomic_write_json, atomic_write_text

__all__ = ["llm", "generate_id", "load_json", "atomic_write_json", "atomic_write_text"]
