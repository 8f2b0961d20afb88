"""Root conftest.py for test configuration.

Ensures local src/ directory takes priority over any installed packages,
and provides the deterministic embedding provider shared by all suites.
"""

import hashlib
import re
import sys
from collections.abc import Callable, Sequence
from pathlib import Path

import numpy as np
import pytest

# Insert local src directory at the beginning of sys.path
# This ensures that the local snapindex package is used, not any installed one
_src_dir = Path(__file__).parent.parent / "src"
if str(_src_dir) not in sys.path:
    sys.path.insert(0, str(_src_dir))

# Force reimport of snapindex modules if already imported
for module_name in list(sys.modules.keys()):
    if module_name.startswith("snapindex"):
        del sys.modules[module_name]

_TOKEN_RE = re.compile(r"[a-z_][a-z0-9_]*")


class FakeProvider:
    """Deterministic bag-of-words embedder.

    Each token is hashed into one of ``dim`` buckets, so texts sharing words
    have higher cosine similarity. ``fail_on`` makes any batch containing
    that substring raise; ``short_by`` drops vectors from every response.
    """

    def __init__(
        self,
        dim: int = 64,
        model_name: str = "fake-model",
        *,
        fail_on: str | None = None,
        short_by: int = 0,
    ) -> None:
        self.dim = dim
        self._model_name = model_name
        self.fail_on = fail_on
        self.short_by = short_by
        self.calls: list[list[str]] = []
        self.query_calls: list[str] = []
        self.closed = False

    @property
    def model_name(self) -> str:
        return self._model_name

    def vector(self, text: str) -> list[float]:
        vec = np.zeros(self.dim, dtype=np.float32)
        for token in _TOKEN_RE.findall(text.lower()):
            bucket = int(hashlib.sha256(token.encode()).hexdigest()[:8], 16) % self.dim
            vec[bucket] += 1.0
        if not vec.any():
            vec[0] = 1.0
        vec /= np.linalg.norm(vec)
        return [float(x) for x in vec]

    def embed(self, text: str) -> list[float]:
        return self.embed_batch([text])[0]

    def embed_batch(self, texts: Sequence[str]) -> list[list[float]]:
        self.calls.append(list(texts))
        if self.fail_on is not None and any(self.fail_on in t for t in texts):
            raise RuntimeError("provider rejected batch")
        vectors = [self.vector(t) for t in texts]
        return vectors[: len(vectors) - self.short_by] if self.short_by else vectors

    def embed_query(self, text: str) -> list[float]:
        self.query_calls.append(text)
        return self.vector(text)

    def close(self) -> None:
        self.closed = True

    @property
    def embedded_texts(self) -> list[str]:
        return [t for call in self.calls for t in call]


@pytest.fixture
def fake_provider() -> FakeProvider:
    return FakeProvider()


@pytest.fixture
def provider_factory() -> Callable[..., FakeProvider]:
    """Build FakeProvider instances with custom options."""
    return FakeProvider


@pytest.fixture
def write_files() -> Callable[[Path, dict[str, str]], None]:
    """Write {relative_path: content} under a root directory."""

    def _write(root: Path, files: dict[str, str]) -> None:
        for rel_path, content in files.items():
            path = root / rel_path
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(content, encoding="utf-8")

    return _write
