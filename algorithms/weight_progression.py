import re
from decimal import Decimal


class WeightProgression:
    """Advance free-text weight labels such as ``"9 plates"`` or ``"22.5 kg"``."""

    THRESHOLD: float = 20.0
    SMALL_STEP: float = 1.0
    LARGE_STEP: float = 2.5
    _NUMBER = re.compile(r"\d+(?:\.\d+)?|\.\d+")

    @classmethod
    def step_for(
        cls,
        value: Decimal,
        threshold: float | None = None,
        small: float | None = None,
        large: float | None = None,
    ) -> Decimal:
        """Return the increment applied to ``value``."""
        limit = cls.THRESHOLD if threshold is None else threshold
        if value < Decimal(str(limit)):
            return Decimal(str(cls.SMALL_STEP if small is None else small))
        return Decimal(str(cls.LARGE_STEP if large is None else large))

    @staticmethod
    def format_number(value: Decimal) -> str:
        return format(value.normalize(), "f")

    @classmethod
    def increment_weight(
        cls,
        label: str,
        threshold: float | None = None,
        small: float | None = None,
        large: float | None = None,
    ) -> str:
        """Increase the first number found in ``label``.

        Labels without digits are returned unchanged. Only the matched
        substring is replaced so unit suffixes survive.
        """
        match = cls._NUMBER.search(label or "")
        if match is None:
            return label
        value = Decimal(match.group(0))
        new_value = value + cls.step_for(value, threshold, small, large)
        return (
            label[: match.start()]
            + cls.format_number(new_value)
            + label[match.end() :]
        )
