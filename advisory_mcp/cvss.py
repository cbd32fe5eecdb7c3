"""CVSS 3.x base score calculation.

Weights are the published CVSS 3.1 tables. The final score is rounded *up* to
one decimal place, so ``9.76`` becomes ``9.8`` and ``1.745`` becomes ``1.8``.
"""
from __future__ import annotations

import math
from typing import Dict

ATTACK_VECTOR = {"N": 0.85, "A": 0.62, "L": 0.55, "P": 0.2}
ATTACK_COMPLEXITY = {"L": 0.77, "H": 0.44}
# Privileges Required: (scope unchanged, scope changed)
PRIVILEGES_REQUIRED = {"N": (0.85, 0.85), "L": (0.62, 0.68), "H": (0.27, 0.50)}
USER_INTERACTION = {"N": 0.85, "R": 0.62}
CIA_IMPACT = {"H": 0.56, "L": 0.22, "N": 0.0}


def parse_cvss_vector(vector: str) -> Dict[str, str]:
    """Split ``CVSS:3.1/AV:N/AC:L/...`` into ``{"AV": "N", "AC": "L", ...}``.

    The leading ``CVSS:3.x`` label is skipped; malformed parts are ignored.
    """
    metrics: Dict[str, str] = {}
    for part in vector.split("/")[1:]:
        key, _, value = part.partition(":")
        if key and value:
            metrics[key] = value
    return metrics


def calculate_cvss3_score(vector: str) -> float:
    """Base score (0.0-10.0) of a CVSS 3.x vector string.

    Metrics that are missing or carry an unknown value weigh 0.
    """
    m = parse_cvss_vector(vector)
    scope_changed = m.get("S") == "C"

    av = ATTACK_VECTOR.get(m.get("AV", ""), 0.0)
    ac = ATTACK_COMPLEXITY.get(m.get("AC", ""), 0.0)
    pr_weights = PRIVILEGES_REQUIRED.get(m.get("PR", ""))
    pr = pr_weights[1 if scope_changed else 0] if pr_weights else 0.0
    ui = USER_INTERACTION.get(m.get("UI", ""), 0.0)
    c = CIA_IMPACT.get(m.get("C", ""), 0.0)
    i = CIA_IMPACT.get(m.get("I", ""), 0.0)
    a = CIA_IMPACT.get(m.get("A", ""), 0.0)

    exploitability = 8.22 * av * ac * pr * ui
    iss = 1 - ((1 - c) * (1 - i) * (1 - a))

    if scope_changed:
        impact = 7.52 * (iss - 0.029) - 3.25 * math.pow(iss * 0.9731 - 0.02, 13)
    else:
        impact = 6.42 * iss

    if impact <= 0:
        base = 0.0
    elif scope_changed:
        base = min(1.08 * (impact + exploitability), 10.0)
    else:
        base = min(impact + exploitability, 10.0)

    return math.ceil(base * 10) / 10
