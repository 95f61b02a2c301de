"""
Proof-of-Placement (PoP) Engine
===============================

A PoP attests that ``next_commit`` legally followed from ``prev_commit`` via
``action``. PoPs link into chains by value equality of digests:

    chain[i].next_commit == chain[i + 1].prev_commit

Verification re-runs the transition engine and is total: any mismatch or
malformed input yields False, never an exception.

Wire record:
    {
      "prev_commit": <64 hex>,
      "action": "ShiftLeft" | ... | "HardDrop",
      "next_commit": <64 hex>,
      "witness": {"piece", "anchor_row", "anchor_col", "rotation", "cleared_rows"},
      "signature": <base64> | null
    }
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from backend.crypto.core import canonical_json_bytes, is_hex_digest, rfc8785_canonicalize
from backend.crypto.signer import DEFAULT_SIGNER, Signer
from engine.actions import Action
from engine.pieces import PieceVariant, validate_rotation
from engine.state import GameState, MalformedStateError
from engine.transition import IllegalMoveError, Witness, step

from .commitment import hash_state

logger = logging.getLogger("PoPEngine")

_POP_FIELDS = {"prev_commit", "action", "next_commit", "witness", "signature"}
_WITNESS_FIELDS = {"piece", "anchor_row", "anchor_col", "rotation", "cleared_rows"}


def _require_int(value: Any, name: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{name} must be an integer, got {value!r}")
    return value


def witness_from_dict(data: Dict[str, Any]) -> Witness:
    if not isinstance(data, dict) or set(data) != _WITNESS_FIELDS:
        raise ValueError(f"witness must have exactly the fields {sorted(_WITNESS_FIELDS)}")
    try:
        variant = PieceVariant[data["piece"]]
    except (KeyError, TypeError):
        raise ValueError(f"unknown piece variant {data['piece']!r}") from None
    rotation = validate_rotation(_require_int(data["rotation"], "rotation"))
    cleared = data["cleared_rows"]
    if not isinstance(cleared, list):
        raise ValueError("cleared_rows must be a list")
    return Witness(
        variant=variant,
        anchor_row=_require_int(data["anchor_row"], "anchor_row"),
        anchor_col=_require_int(data["anchor_col"], "anchor_col"),
        rotation=rotation,
        cleared_rows=tuple(_require_int(row, "cleared row") for row in cleared),
    )


@dataclass(frozen=True)
class PlacementProof:
    """Immutable proof that one state followed from another via ``action``."""

    prev_commit: str
    action: Action
    next_commit: str
    witness: Witness
    signature: Optional[str] = None

    def signing_payload(self) -> bytes:
        """Canonical bytes of the signed tuple (prev_commit, action, next_commit)."""
        return canonical_json_bytes([self.prev_commit, self.action.value, self.next_commit])

    def to_dict(self) -> Dict[str, Any]:
        return {
            "prev_commit": self.prev_commit,
            "action": self.action.value,
            "next_commit": self.next_commit,
            "witness": self.witness.to_dict(),
            "signature": self.signature,
        }

    def to_json(self) -> str:
        return rfc8785_canonicalize(self.to_dict())

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PlacementProof":
        """Strict parse of a wire record; raises ``ValueError`` on any deviation."""
        if not isinstance(data, dict) or set(data) != _POP_FIELDS:
            raise ValueError(f"PoP record must have exactly the fields {sorted(_POP_FIELDS)}")
        for key in ("prev_commit", "next_commit"):
            if not is_hex_digest(data[key]):
                raise ValueError(f"{key} must be a 64-character lowercase hex digest")
        signature = data["signature"]
        if signature is not None and not isinstance(signature, str):
            raise ValueError("signature must be a string or null")
        return cls(
            prev_commit=data["prev_commit"],
            action=Action.parse(data["action"]),
            next_commit=data["next_commit"],
            witness=witness_from_dict(data["witness"]),
            signature=signature,
        )

    @classmethod
    def from_json(cls, text: str) -> "PlacementProof":
        return cls.from_dict(json.loads(text))


def _generate(
    prev_state: GameState,
    action: Action,
    signing_key: Optional[bytes],
    signer: Signer,
) -> Tuple[PlacementProof, GameState]:
    prev_commit = hash_state(prev_state)
    transition = step(prev_state, action)
    pop = PlacementProof(
        prev_commit=prev_commit,
        action=Action.parse(action),
        next_commit=hash_state(transition.state),
        witness=transition.witness,
    )
    if signing_key is not None:
        pop = PlacementProof(
            pop.prev_commit,
            pop.action,
            pop.next_commit,
            pop.witness,
            signer.sign(pop.signing_payload(), signing_key),
        )
    return pop, transition.state


def generate(
    prev_state: GameState,
    action: Action,
    signing_key: Optional[bytes] = None,
    signer: Signer = DEFAULT_SIGNER,
) -> PlacementProof:
    """
    Apply ``action`` to ``prev_state`` and wrap the transition as a PoP.

    Raises:
        IllegalMoveError: the move is rejected; no PoP is produced
    """
    return _generate(prev_state, action, signing_key, signer)[0]


def _check(
    pop: PlacementProof,
    prev_state: GameState,
    public_key: Optional[bytes],
    signer: Signer,
) -> Tuple[Optional[str], Optional[GameState]]:
    """Return (failure reason, successor state); reason is None when the PoP verifies."""
    if hash_state(prev_state) != pop.prev_commit:
        return "prev_commit mismatch", None
    try:
        transition = step(prev_state, pop.action)
    except IllegalMoveError as exc:
        return f"illegal action: {exc}", None
    if hash_state(transition.state) != pop.next_commit:
        return "next_commit mismatch", None
    if transition.witness != pop.witness:
        return "witness mismatch", None
    if pop.signature is not None:
        if public_key is None:
            return "signature present but no public key supplied", None
        if not signer.verify_signature(pop.signing_payload(), pop.signature, public_key):
            return "signature invalid", None
    return None, transition.state


def verify(
    pop: PlacementProof,
    prev_state: GameState,
    public_key: Optional[bytes] = None,
    signer: Signer = DEFAULT_SIGNER,
) -> bool:
    """Side-effect-free check of a single PoP against its claimed predecessor."""
    try:
        reason, _ = _check(pop, prev_state, public_key, signer)
    except (AttributeError, TypeError, ValueError, MalformedStateError) as exc:
        logger.debug(f"[VERIFY] malformed PoP input: {exc}")
        return False
    if reason is not None:
        logger.debug(f"[VERIFY] PoP rejected: {reason}")
    return reason is None


@dataclass(frozen=True)
class ChainVerification:
    """
    Result of folding verification over a PoP chain.

    ``failed_at`` is the index of the first frame that did not verify; frames
    before it verified, frames from it onward are untrusted.
    """

    valid: bool
    checked: int
    failed_at: Optional[int] = None
    reason: Optional[str] = None
    final_state: Optional[GameState] = None


def verify_chain_detailed(
    pops: Sequence[PlacementProof],
    initial_state: GameState,
    public_key: Optional[bytes] = None,
    signer: Signer = DEFAULT_SIGNER,
) -> ChainVerification:
    current = initial_state
    for index, pop in enumerate(pops):
        try:
            if index > 0 and pops[index - 1].next_commit != pop.prev_commit:
                reason, successor = "chain linkage broken", None
            else:
                reason, successor = _check(pop, current, public_key, signer)
        except (AttributeError, TypeError, ValueError, MalformedStateError) as exc:
            reason, successor = f"malformed frame: {exc}", None
        if reason is not None:
            logger.debug(f"[CHAIN] frame {index} rejected: {reason}")
            return ChainVerification(False, index, index, reason)
        current = successor
    return ChainVerification(True, len(pops), final_state=current)


def verify_chain(
    pops: Sequence[PlacementProof],
    initial_state: GameState,
    public_key: Optional[bytes] = None,
    signer: Signer = DEFAULT_SIGNER,
) -> bool:
    return verify_chain_detailed(pops, initial_state, public_key, signer).valid


def build_chain(
    initial_state: GameState,
    actions: Iterable[Action],
    signing_key: Optional[bytes] = None,
    signer: Signer = DEFAULT_SIGNER,
) -> Tuple[List[PlacementProof], GameState]:
    """
    Generate one PoP per action, threading the state through.

    Raises:
        IllegalMoveError: at the first rejected action
    """
    pops: List[PlacementProof] = []
    current = initial_state
    for action in actions:
        pop, current = _generate(current, action, signing_key, signer)
        pops.append(pop)
    return pops, current


def chain_to_dicts(pops: Sequence[PlacementProof]) -> List[Dict[str, Any]]:
    return [pop.to_dict() for pop in pops]


def chain_from_dicts(records: Sequence[Dict[str, Any]]) -> List[PlacementProof]:
    if not isinstance(records, list):
        raise ValueError("PoP chain must be a list")
    return [PlacementProof.from_dict(record) for record in records]
