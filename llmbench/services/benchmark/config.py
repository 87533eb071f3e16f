"""
Benchmark Configuration

Defines the resolved configuration consumed by the benchmark runner and the
built-in prompt sets.
"""

from dataclasses import asdict, dataclass, field
from typing import Any

DEFAULT_PROMPTS: list[str] = [
    "Explain quantum computing in simple terms.",
    "Write a short story about a robot discovering emotions.",
    "Solve this math problem: What is 15% of 240?",
    "Create a Python function to calculate the Fibonacci sequence.",
    "Describe the process of photosynthesis in detail.",
]

PROMPT_SETS: dict[str, list[str]] = {
    "default": DEFAULT_PROMPTS,
    "coding": [
        "Write a function to reverse a string in Python.",
        "Implement a binary search algorithm in JavaScript.",
        "Create a REST API endpoint using Express.js.",
        "Write a recursive function to calculate factorial.",
        "Implement a simple linked list in C++.",
    ],
    "creative": [
        "Write a haiku about artificial intelligence.",
        "Create a dialogue between two characters meeting for the first time.",
        "Describe a futuristic city in 100 words.",
        "Write a product description for an innovative gadget.",
        "Create a short poem about the changing seasons.",
    ],
    "reasoning": [
        "If a train travels 60mph for 2.5 hours, how far does it go?",
        "What are the ethical implications of autonomous vehicles?",
        "Compare the advantages and disadvantages of renewable energy.",
        'Explain the logical fallacy in: "All birds can fly, penguins are birds, '
        'therefore penguins can fly."',
        "How would you prioritize tasks when everything seems urgent?",
    ],
}


@dataclass
class GenerationOptions:
    """Sampling options sent with every generate request"""

    temperature: float = 0.7
    top_p: float = 0.9
    num_predict: int = 256

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class BenchmarkConfig:
    """Resolved configuration for one benchmark run"""

    # Models to benchmark, processed in list order
    models: list[str]

    # Prompts issued for every iteration
    prompts: list[str] = field(default_factory=lambda: list(DEFAULT_PROMPTS))

    # Measured passes over the prompt set
    iterations: int = 5

    # Simultaneous calls for the opt-in concurrent mode
    concurrency: int = 1

    # Per-call timeout in seconds
    timeout_seconds: float = 300.0

    # Discarded calls issued before measurement
    warmup_iterations: int = 2

    options: GenerationOptions = field(default_factory=GenerationOptions)

    def validate(self) -> tuple[bool, str]:
        """Validate configuration"""
        if not self.models:
            return False, "At least one model is required"

        if any(not model for model in self.models):
            return False, "Model names cannot be empty"

        if not self.prompts:
            return False, "At least one prompt is required"

        if self.iterations < 0:
            return False, "Iterations cannot be negative"

        if self.warmup_iterations < 0:
            return False, "Warmup iterations cannot be negative"

        if self.concurrency < 1:
            return False, "Concurrency must be at least 1"

        if self.timeout_seconds <= 0:
            return False, "Timeout must be positive"

        return True, ""

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary"""
        return {
            "models": list(self.models),
            "prompts": list(self.prompts),
            "iterations": self.iterations,
            "concurrency": self.concurrency,
            "timeout_seconds": self.timeout_seconds,
            "warmup_iterations": self.warmup_iterations,
            "options": self.options.to_dict(),
        }


def get_prompt_set(name: str) -> list[str]:
    """Return a copy of a named prompt set, falling back to the default set."""
    return list(PROMPT_SETS.get(name, DEFAULT_PROMPTS))
