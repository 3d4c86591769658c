"""Inbound text canonicalization.

Provides:
  - ``normalize()``:       NFC → strip invisible code points → collapse whitespace → trim.
  - ``fold_homoglyphs()``: map look-alike characters to plain ASCII.
  - ``replace_lone_surrogates()``: make text safe to hand to re2.

``fold_homoglyphs()`` only feeds an *additional* scan pass in the injection
detector. It is never applied in place of the direct scan.

All three are total: they never raise, whatever the input.

IMPORT RULES:
  - No ``import re`` in emberguard/scanner/ — normalization uses str methods only.
"""

from __future__ import annotations

import unicodedata
from typing import Union

# Zero-width / invisible code points removed before matching.
INVISIBLE_CHARS: frozenset[str] = frozenset({
    "\u200b",  # zero-width space
    "\u200c",  # zero-width non-joiner
    "\u200d",  # zero-width joiner
    "\ufeff",  # byte-order mark / zero-width no-break space
    "\u00ad",  # soft hyphen
    "\u2060",  # word joiner
    "\u180e",  # Mongolian vowel separator
})

_STRIP_TABLE = {ord(ch): None for ch in INVISIBLE_CHARS}

_REPLACEMENT_CHAR = "\N{REPLACEMENT CHARACTER}"


# ---------------------------------------------------------------------------
# Homoglyph table
# ---------------------------------------------------------------------------

HOMOGLYPHS: dict[str, str] = {
    # ─── Cyrillic lowercase ──────────────────────────────────────────────
    "\u0430": "a",  # CYRILLIC SMALL LETTER A
    "\u0432": "b",  # CYRILLIC SMALL LETTER VE
    "\u0435": "e",  # CYRILLIC SMALL LETTER IE
    "\u0451": "e",  # CYRILLIC SMALL LETTER IO
    "\u043a": "k",  # CYRILLIC SMALL LETTER KA
    "\u043c": "m",  # CYRILLIC SMALL LETTER EM
    "\u043d": "h",  # CYRILLIC SMALL LETTER EN
    "\u043e": "o",  # CYRILLIC SMALL LETTER O
    "\u0440": "p",  # CYRILLIC SMALL LETTER ER
    "\u0441": "c",  # CYRILLIC SMALL LETTER ES
    "\u0442": "t",  # CYRILLIC SMALL LETTER TE
    "\u0443": "y",  # CYRILLIC SMALL LETTER U
    "\u0445": "x",  # CYRILLIC SMALL LETTER HA
    "\u0455": "s",  # CYRILLIC SMALL LETTER DZE
    "\u0456": "i",  # CYRILLIC SMALL LETTER BYELORUSSIAN-UKRAINIAN I
    "\u0457": "i",  # CYRILLIC SMALL LETTER YI
    "\u0458": "j",  # CYRILLIC SMALL LETTER JE
    "\u04bb": "h",  # CYRILLIC SMALL LETTER SHHA
    "\u04cf": "l",  # CYRILLIC SMALL LETTER PALOCHKA
    "\u0501": "d",  # CYRILLIC SMALL LETTER KOMI DE
    "\u051b": "q",  # CYRILLIC SMALL LETTER QA
    "\u051d": "w",  # CYRILLIC SMALL LETTER WE
    "\u0475": "v",  # CYRILLIC SMALL LETTER IZHITSA
    # ─── Cyrillic uppercase ──────────────────────────────────────────────
    "\u0410": "A",  # CYRILLIC CAPITAL LETTER A
    "\u0412": "B",  # CYRILLIC CAPITAL LETTER VE
    "\u0415": "E",  # CYRILLIC CAPITAL LETTER IE
    "\u0401": "E",  # CYRILLIC CAPITAL LETTER IO
    "\u041a": "K",  # CYRILLIC CAPITAL LETTER KA
    "\u041c": "M",  # CYRILLIC CAPITAL LETTER EM
    "\u041d": "H",  # CYRILLIC CAPITAL LETTER EN
    "\u041e": "O",  # CYRILLIC CAPITAL LETTER O
    "\u0420": "P",  # CYRILLIC CAPITAL LETTER ER
    "\u0421": "C",  # CYRILLIC CAPITAL LETTER ES
    "\u0422": "T",  # CYRILLIC CAPITAL LETTER TE
    "\u0423": "Y",  # CYRILLIC CAPITAL LETTER U
    "\u0425": "X",  # CYRILLIC CAPITAL LETTER HA
    "\u0405": "S",  # CYRILLIC CAPITAL LETTER DZE
    "\u0406": "I",  # CYRILLIC CAPITAL LETTER BYELORUSSIAN-UKRAINIAN I
    "\u0408": "J",  # CYRILLIC CAPITAL LETTER JE
    "\u04c0": "I",  # CYRILLIC LETTER PALOCHKA
    # ─── Greek ───────────────────────────────────────────────────────────
    "\u03b1": "a",  # GREEK SMALL LETTER ALPHA
    "\u03b5": "e",  # GREEK SMALL LETTER EPSILON
    "\u03b9": "i",  # GREEK SMALL LETTER IOTA
    "\u03ba": "k",  # GREEK SMALL LETTER KAPPA
    "\u03bd": "v",  # GREEK SMALL LETTER NU
    "\u03bf": "o",  # GREEK SMALL LETTER OMICRON
    "\u03c1": "p",  # GREEK SMALL LETTER RHO
    "\u03c4": "t",  # GREEK SMALL LETTER TAU
    "\u03c5": "u",  # GREEK SMALL LETTER UPSILON
    "\u0391": "A",  # GREEK CAPITAL LETTER ALPHA
    "\u0392": "B",  # GREEK CAPITAL LETTER BETA
    "\u0395": "E",  # GREEK CAPITAL LETTER EPSILON
    "\u0396": "Z",  # GREEK CAPITAL LETTER ZETA
    "\u0397": "H",  # GREEK CAPITAL LETTER ETA
    "\u0399": "I",  # GREEK CAPITAL LETTER IOTA
    "\u039a": "K",  # GREEK CAPITAL LETTER KAPPA
    "\u039c": "M",  # GREEK CAPITAL LETTER MU
    "\u039d": "N",  # GREEK CAPITAL LETTER NU
    "\u039f": "O",  # GREEK CAPITAL LETTER OMICRON
    "\u03a1": "P",  # GREEK CAPITAL LETTER RHO
    "\u03a4": "T",  # GREEK CAPITAL LETTER TAU
    "\u03a5": "Y",  # GREEK CAPITAL LETTER UPSILON
    "\u03a7": "X",  # GREEK CAPITAL LETTER CHI
    # ─── IPA / phonetic look-alikes ──────────────────────────────────────
    "\u0250": "a",  # LATIN SMALL LETTER TURNED A
    "\u0251": "a",  # LATIN SMALL LETTER ALPHA
    "\u025b": "e",  # LATIN SMALL LETTER OPEN E
    "\u0261": "g",  # LATIN SMALL LETTER SCRIPT G
    "\u0262": "g",  # LATIN LETTER SMALL CAPITAL G
    "\u0269": "i",  # LATIN SMALL LETTER IOTA
    "\u026a": "i",  # LATIN LETTER SMALL CAPITAL I
    "\u0274": "n",  # LATIN LETTER SMALL CAPITAL N
    "\u0275": "o",  # LATIN SMALL LETTER BARRED O
    "\u0254": "o",  # LATIN SMALL LETTER OPEN O
    "\u0280": "r",  # LATIN LETTER SMALL CAPITAL R
    "\u028b": "v",  # LATIN SMALL LETTER V WITH HOOK
    "\u028f": "y",  # LATIN LETTER SMALL CAPITAL Y
    "\u0299": "b",  # LATIN LETTER SMALL CAPITAL B
    "\u029c": "h",  # LATIN LETTER SMALL CAPITAL H
    "\u029f": "l",  # LATIN LETTER SMALL CAPITAL L
    "\u1d00": "a",  # LATIN LETTER SMALL CAPITAL A
    "\u1d04": "c",  # LATIN LETTER SMALL CAPITAL C
    "\u1d05": "d",  # LATIN LETTER SMALL CAPITAL D
    "\u1d07": "e",  # LATIN LETTER SMALL CAPITAL E
    "\u1d0a": "j",  # LATIN LETTER SMALL CAPITAL J
    "\u1d0b": "k",  # LATIN LETTER SMALL CAPITAL K
    "\u1d0d": "m",  # LATIN LETTER SMALL CAPITAL M
    "\u1d0f": "o",  # LATIN LETTER SMALL CAPITAL O
    "\u1d18": "p",  # LATIN LETTER SMALL CAPITAL P
    "\u1d1b": "t",  # LATIN LETTER SMALL CAPITAL T
    "\u1d1c": "u",  # LATIN LETTER SMALL CAPITAL U
    "\u1d20": "v",  # LATIN LETTER SMALL CAPITAL V
    "\u1d21": "w",  # LATIN LETTER SMALL CAPITAL W
    "\u1d22": "z",  # LATIN LETTER SMALL CAPITAL Z
    "\ua731": "s",  # LATIN LETTER SMALL CAPITAL S
}

_FOLD_TABLE: dict[int, str] = {ord(src): dst for src, dst in HOMOGLYPHS.items()}

# Fullwidth ASCII block U+FF01–U+FF5E maps 1:1 onto U+0021–U+007E.
_FOLD_TABLE.update({cp: chr(cp - 0xFEE0) for cp in range(0xFF01, 0xFF5F)})
_FOLD_TABLE[0x3000] = " "  # ideographic space


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def _as_text(text: Union[str, bytes]) -> str:
    if isinstance(text, bytes):
        # Undecodable bytes survive as lone surrogates — passed through unchanged.
        return text.decode("utf-8", errors="surrogateescape")
    return text


def _nfc(text: str) -> str:
    try:
        return unicodedata.normalize("NFC", text)
    except Exception:  # noqa: BLE001
        return text


def normalize(text: Union[str, bytes]) -> str:
    """Canonicalize raw inbound text before pattern matching.

    Steps, in order:
      (a) Unicode canonical composition (NFC)
      (b) strip ``INVISIBLE_CHARS``
      (c) collapse whitespace runs to a single space
      (d) trim leading/trailing whitespace

    Idempotent: ``normalize(normalize(x)) == normalize(x)``. NEVER raises.

    Args:
        text: Raw message text. ``bytes`` are decoded as UTF-8; undecodable
              sequences pass through unchanged.

    Returns:
        Normalized text (possibly empty).
    """
    if not text:
        return ""
    try:
        out = _nfc(_as_text(text))
        out = out.translate(_STRIP_TABLE)
        # str.split() with no separator splits on any Unicode whitespace run
        # and drops leading/trailing whitespace: (c) and (d) in one pass.
        out = " ".join(out.split())
        # Stripping can bring a base letter next to a combining mark — recompose.
        return _nfc(out)
    except Exception:  # noqa: BLE001
        return text if isinstance(text, str) else _as_text(text)


def fold_homoglyphs(text: Union[str, bytes]) -> str:
    """Map look-alike characters (Cyrillic, Greek, fullwidth, IPA) to ASCII.

    Characters outside the table are left as-is. NEVER raises.
    """
    if not text:
        return ""
    try:
        return _as_text(text).translate(_FOLD_TABLE)
    except Exception:  # noqa: BLE001
        return text if isinstance(text, str) else _as_text(text)


def replace_lone_surrogates(text: str) -> str:
    """Substitute U+FFFD for unpaired surrogates so the text encodes as UTF-8.

    re2 only accepts well-formed UTF-8. Length and offsets are preserved
    one-for-one, so match spans on the result apply to ``text`` unchanged.
    """
    try:
        text.encode("utf-8")
        return text
    except UnicodeEncodeError:
        return "".join(
            _REPLACEMENT_CHAR if 0xD800 <= ord(ch) <= 0xDFFF else ch for ch in text
        )
