from typing import Iterable

from models import SetupLine


class SetupParser:
    """Convert setups between ``weight|rounds|min|max`` text and SetupLine lists."""

    @staticmethod
    def parse(text: str) -> list[SetupLine]:
        lines: list[SetupLine] = []
        for raw in (text or "").splitlines():
            line = raw.strip()
            if not line:
                continue
            parts = [p.strip() for p in line.split("|")]
            parts += ["0"] * (4 - len(parts))
            weight, rounds, min_rep, max_rep = parts[:4]
            try:
                lines.append(
                    SetupLine(
                        weight=weight,
                        rounds=int(rounds or 0),
                        min_rep=int(min_rep or 0),
                        max_rep=int(max_rep or 0),
                    )
                )
            except ValueError:
                raise ValueError(f"invalid setup line: {line!r}")
        return lines

    @staticmethod
    def to_text(setup: Iterable[SetupLine]) -> str:
        return "\n".join(
            f"{s.weight}|{s.rounds}|{s.min_rep}|{s.max_rep}" for s in setup
        )

    @staticmethod
    def summary(setup: Iterable[SetupLine]) -> str:
        return " / ".join(
            f"{s.weight} • {s.rounds}r • {s.min_rep}-{s.max_rep}" for s in setup or []
        )
