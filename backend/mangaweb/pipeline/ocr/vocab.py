from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from types import MappingProxyType
from typing import Iterable, Mapping, Optional

from mangaweb.pipeline.errors import VocabularyError

CONTINUATION_MARKER = "##"
REPLACEMENT_GLYPH = "�"


@dataclass(frozen=True)
class SpecialTokens:
    pad: int = 0
    unk: int = 1
    bos: int = 2
    eos: int = 3


class Vocabulary:
    """Read-only mapping from token id to token string.

    Safe to share between threads: nothing mutates it after construction.
    """

    def __init__(self, tokens: Mapping[int, str], special: Optional[SpecialTokens] = None) -> None:
        for token_id in tokens:
            if int(token_id) < 0:
                raise VocabularyError(f"negative token id {token_id}")
        self._tokens: Mapping[int, str] = MappingProxyType({int(k): v for k, v in tokens.items()})
        self.special = special or SpecialTokens()

    @classmethod
    def from_lines(cls, lines: Iterable[str], special: Optional[SpecialTokens] = None) -> "Vocabulary":
        """Line index is the token id; blank lines keep their index but hold no token."""
        tokens = {}
        for idx, line in enumerate(lines):
            token = line.rstrip("\r\n")
            if token:
                tokens[idx] = token
        return cls(tokens, special)

    @classmethod
    def load(cls, path: Path, special: Optional[SpecialTokens] = None) -> "Vocabulary":
        if not path.is_file():
            raise VocabularyError(f"vocabulary file not found: {path}")
        try:
            text = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            raise VocabularyError(f"failed to read vocabulary {path}: {exc}") from exc
        vocab = cls.from_lines(text.split("\n"), special)
        if not len(vocab):
            raise VocabularyError(f"vocabulary {path} is empty")
        return vocab

    def __len__(self) -> int:
        return len(self._tokens)

    @property
    def width(self) -> int:
        """Number of score slots a model over this vocabulary produces (highest id + 1)."""
        return max(self._tokens, default=-1) + 1

    def get(self, token_id: int) -> Optional[str]:
        return self._tokens.get(token_id)

    def decode(self, token_ids: Iterable[int]) -> str:
        """Turn generated ids into text.

        Begin/end/padding ids are skipped, `##` pieces are glued onto the
        preceding text, and unknown ids become U+FFFD.
        """
        skip = {self.special.bos, self.special.eos, self.special.pad}
        pieces = []
        for token_id in token_ids:
            token_id = int(token_id)
            if token_id in skip:
                continue
            token = self.get(token_id)
            if token is None:
                pieces.append(REPLACEMENT_GLYPH)
            elif token.startswith(CONTINUATION_MARKER):
                pieces.append(token[len(CONTINUATION_MARKER):])
            else:
                pieces.append(token)
        return "".join(pieces)
