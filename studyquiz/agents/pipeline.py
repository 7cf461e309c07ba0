# studyquiz/agents/pipeline.py
import logging
import string
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

import httpx

from ..errors import GenerationError, ParseError
from ..llm import GenerationParams, generate
from .extractor import extract_json

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GenerationConfig:
    """
    Everything that differs between quiz, final exam and topic discovery.
      - template: string.Template; $count is always supplied, plus
        $mc/$tf/$fb when `distribution` is set
      - distribution: (multiple_choice, true_false, fill_blank) weights
      - response_shape: key of the item list in the model's JSON object
      - normalize(candidates) -> surviving items
      - fallback(source, n) -> n synthesized items
      - reconcile(items, count, source) -> exactly `count` items
    """
    name: str
    template: string.Template
    response_shape: str
    params: GenerationParams
    normalize: Callable[[List[Any]], List[Dict[str, Any]]]
    fallback: Callable[[Any, int], List[Dict[str, Any]]]
    reconcile: Callable[[List[Dict[str, Any]], int, Any], List[Dict[str, Any]]]
    distribution: Optional[Tuple[int, int, int]] = None
    success_message: str = "Generated successfully"
    fallback_message: str = "Generated using fallback method"


@dataclass
class GenerationOutcome:
    items: List[Dict[str, Any]]
    used_fallback: bool
    message: str
    error: Optional[GenerationError] = None


def split_counts(count: int, weights: Sequence[int]) -> List[int]:
    """
    Apportion `count` by `weights` (largest remainder; ties go to the earlier slot).
    split_counts(5, (3, 1, 1)) == [3, 1, 1]
    """
    total = sum(weights)
    if count <= 0 or total <= 0:
        return [0 for _ in weights]
    exact = [count * w / total for w in weights]
    counts = [int(x) for x in exact]
    short = count - sum(counts)
    order = sorted(range(len(weights)), key=lambda i: (-(exact[i] - counts[i]), i))
    for i in order[:short]:
        counts[i] += 1
    return counts


def build_prompt(cfg: GenerationConfig, count: int, **fields: Any) -> str:
    values = dict(fields, count=count)
    if cfg.distribution:
        mc, tf, fb = split_counts(count, cfg.distribution)
        values.update(mc=mc, tf=tf, fb=fb)
    return cfg.template.substitute(values)


def candidates_from(payload: Any, shape: str) -> List[Any]:
    if isinstance(payload, list):
        return payload
    if isinstance(payload, dict) and isinstance(payload.get(shape), list):
        return payload[shape]
    raise ParseError(f"Response has no '{shape}' array")


async def run_generation(
    client: httpx.AsyncClient,
    cfg: GenerationConfig,
    count: int,
    source: Any,
    **fields: Any,
) -> GenerationOutcome:
    """
    Requesting -> Parsing | FallbackOnly -> Validating -> Reconciling -> Done.
    Any AI failure goes straight to FallbackOnly; nothing is retried.
    """
    prompt = build_prompt(cfg, count, **fields)
    error: Optional[GenerationError] = None
    try:
        raw = await generate(client, prompt, cfg.params)
        logger.debug("[%s] raw model output (first 200): %s", cfg.name, raw[:200])
        candidates = candidates_from(extract_json(raw, cfg.response_shape).unwrap(), cfg.response_shape)
    except GenerationError as e:
        logger.warning("[%s] %s failure (%s); using fallback method", cfg.name, e.kind, e)
        error = e
        candidates = cfg.fallback(source, count)

    validated = cfg.normalize(candidates)
    if len(validated) < len(candidates):
        logger.info("[%s] discarded %d of %d candidates", cfg.name, len(candidates) - len(validated), len(candidates))

    items = cfg.reconcile(validated, count, source)
    logger.info("[%s] done: %d items (fallback=%s)", cfg.name, len(items), error is not None)
    return GenerationOutcome(
        items=items,
        used_fallback=error is not None,
        message=cfg.fallback_message if error else cfg.success_message,
        error=error,
    )
