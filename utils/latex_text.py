"""
Plain-text rendering of the inline LaTeX ($...$) the model emits.

Reports that cannot typeset math show `$\\frac{1}{2} \\times 4$` as
`1/2 × 4`: commands become Unicode symbols, fractions and roots are
flattened, and the dollar delimiters are dropped.
"""

import re

MATH_SPAN = re.compile(r"\$(?!\s)([^$]+?)(?<!\s)\$")
COMMAND = re.compile(r"\\([A-Za-z]+)")
FRAC = re.compile(r"\\[dt]?frac\s*\{([^{}]*)\}\s*\{([^{}]*)\}")
SQRT = re.compile(r"\\sqrt\s*\{([^{}]*)\}")
TEXT_ARG = re.compile(r"\\(?:text|mathrm|mathbf|mathit|operatorname)\s*\{([^{}]*)\}")
SUPERSCRIPT = re.compile(r"\^\{([^{}]*)\}|\^(\S)")

LATEX_SYMBOLS = {
    # Operators and relations
    "times": "×", "div": "÷", "cdot": "·", "pm": "±", "mp": "∓",
    "leq": "≤", "le": "≤", "geq": "≥", "ge": "≥", "neq": "≠", "ne": "≠",
    "approx": "≈", "equiv": "≡", "sim": "∼", "propto": "∝",
    "infty": "∞", "rightarrow": "→", "to": "→", "leftarrow": "←",
    "Rightarrow": "⇒", "Leftrightarrow": "⇔",
    # Geometry
    "angle": "∠", "triangle": "△", "perp": "⊥", "parallel": "∥",
    "circ": "°", "degree": "°", "cong": "≅",
    # Greek
    "alpha": "α", "beta": "β", "gamma": "γ", "delta": "δ", "Delta": "Δ",
    "epsilon": "ε", "theta": "θ", "lambda": "λ", "mu": "μ", "pi": "π",
    "rho": "ρ", "sigma": "σ", "Sigma": "Σ", "phi": "φ", "omega": "ω", "Omega": "Ω",
    # Sets and logic
    "in": "∈", "notin": "∉", "subset": "⊂", "cup": "∪", "cap": "∩",
    "therefore": "∴", "because": "∵",
    # Spacing and sizing
    "left": "", "right": "", "quad": " ", "qquad": "  ",
    # Accents keep only their argument
    "overline": "", "bar": "", "vec": "", "hat": "",
}

SUPERSCRIPTS = dict(zip("0123456789+-()n", "⁰¹²³⁴⁵⁶⁷⁸⁹⁺⁻⁽⁾ⁿ"))


def _superscript(match: re.Match) -> str:
    exponent = (match.group(1) if match.group(1) is not None else match.group(2)).strip()
    if exponent == "°":
        return "°"
    if exponent and all(ch in SUPERSCRIPTS for ch in exponent):
        return "".join(SUPERSCRIPTS[ch] for ch in exponent)
    return f"^({exponent})" if len(exponent) > 1 else f"^{exponent}"


def _flatten(math: str) -> str:
    text = TEXT_ARG.sub(r"\1", math)
    # Innermost first, so nested fractions flatten fully
    previous = None
    while previous != text:
        previous = text
        text = FRAC.sub(lambda m: f"{_group(m.group(1))}/{_group(m.group(2))}", text)
        text = SQRT.sub(lambda m: f"√{_group(m.group(1))}", text)
    text = text.replace("\\%", "%").replace("\\,", " ").replace("\\;", " ").replace("\\ ", " ")
    text = COMMAND.sub(lambda m: LATEX_SYMBOLS.get(m.group(1), m.group(1)), text)
    text = SUPERSCRIPT.sub(_superscript, text)
    text = text.replace("{", "").replace("}", "")
    return re.sub(r"\s{2,}", " ", text).strip()


def _group(expr: str) -> str:
    expr = expr.strip()
    if len(expr) <= 1 or expr.isalnum():
        return expr
    return f"({expr})"


def latex_to_text(text: str) -> str:
    """Replace every $...$ span with a readable Unicode rendering."""
    if not text or "$" not in text:
        return text or ""
    return MATH_SPAN.sub(lambda m: _flatten(m.group(1)), text)
