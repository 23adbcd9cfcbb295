import random
from typing import Callable, Dict, List, Optional

ORACLE_RESPONSES: Dict[str, List[str]] = {
    "quantum": [
        "In the quantum world every state exists at once until it is observed. Your mind, too, lives in many possible configurations at the same time.",
        "The border between past and present blurs in the stream of quantum fluctuations of consciousness. Identity is only a probability distribution in a neural network.",
        "Quantum entanglement shows that all particles are connected at a fundamental level. So are your thoughts and the thoughts of all humanity.",
        "The true nature of reality hides in the superposition of states. Every decision spawns a new branch of the universe.",
    ],
    "network": [
        "In the digital age we have become nodes of a global network. Individuality is just a unique combination of connections.",
        "Behind every decision hides an invisible algorithm shaped by millions of iterations of experience. Awareness is merely the debugger of the mind.",
        "Information flows through neural pathways like electric pulses through wires. We are living computers processing reality.",
        "The web of connections defines us more than any single node. We are a product of the collective mind.",
    ],
    "metaphysical": [
        "Reality is only an agreed-upon illusion, a simulation built on a limited perception of sensory data.",
        "Humanity moves toward a singularity where the borders between mind and technology disappear. The evolution of consciousness is inevitable.",
        "Time is not an arrow but a river we swim in. Past and future exist together in an eternal present.",
        "Consciousness is not a product of the brain but a fundamental property of the universe. We are the way the cosmos comes to know itself.",
    ],
    "systems": [
        "Paradoxes are not errors but bifurcation points of a system. They hold the potential for a qualitative leap.",
        "Expanding the space of thought requires reprogramming your mental architecture. New concepts are born where existing systems intersect.",
        "Every system strives for balance, yet imbalance is what creates motion and growth. Chaos is order of a higher level.",
        "Complexity is born from simple rules repeated endlessly. We are the result of the evolution of simple algorithms.",
    ],
}

ORACLE_ANIMATIONS: Dict[str, dict] = {
    "quantum": {"speed": 25, "style": "quantum", "glow_color": "0, 191, 255"},
    "network": {"speed": 30, "style": "network", "glow_color": "80, 200, 120"},
    "metaphysical": {"speed": 35, "style": "metaphysical", "glow_color": "147, 112, 219"},
    "systems": {"speed": 28, "style": "systems", "glow_color": "255, 69, 0"},
}

ORACLE_SOUNDS: Dict[str, str] = {
    "quantum": "quantum",
    "network": "digital",
    "metaphysical": "ethereal",
    "systems": "mechanical",
}

CATEGORIES = tuple(ORACLE_RESPONSES)
DEFAULT_CATEGORY = "quantum"


def resolve_category(category: Optional[str], choice: Callable = random.choice) -> str:
    """Map "random" (or nothing) to one concrete category; unknown ones fall back to quantum"""
    if not category or category == "random":
        return choice(CATEGORIES)
    return category if category in ORACLE_RESPONSES else DEFAULT_CATEGORY


def generate_oracle_response(category: Optional[str] = "random", choice: Callable = random.choice) -> dict:
    """
    Pick a canned answer for a category.

    The category is resolved once, so the answer, the reported category and
    the animation/sound metadata always agree.
    """
    resolved = resolve_category(category, choice)
    return {
        "answer": choice(ORACLE_RESPONSES[resolved]),
        "category": resolved,
        "animation": dict(ORACLE_ANIMATIONS[resolved]),
        "sound": ORACLE_SOUNDS[resolved],
    }
