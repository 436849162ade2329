"""Step-by-step admin dialog for adding extraction script rules."""

from dataclasses import dataclass, field

from models import Script


class WizardFinished(Exception):
    """next() was called on a wizard that is waiting for commit."""


@dataclass
class Step:
    prompt: str
    response: str = ""


def _default_steps() -> list[Step]:
    return [
        Step("off"),
        Step("pattern: (regex searched in the item URL)"),
        Step("script: (one 'field: css selector [@attr]' per line, fields name/price/quantity)"),
        Step("commit? (any reply saves the rule)"),
    ]


@dataclass
class DbWizard:
    """Linear state machine: idle → pattern → script → commit.

    One instance per admin chat. ``current_step`` only moves forward by one
    per input until ``reset()``.
    """

    steps: list[Step] = field(default_factory=_default_steps)
    current_step: int = 0

    def finished(self) -> bool:
        return self.current_step == len(self.steps) - 1

    def in_progress(self) -> bool:
        return self.current_step != 0

    def next(self, text: str) -> Step:
        """Record ``text`` for the current step and return the following one."""
        if self.finished():
            raise WizardFinished("wizard is waiting for commit")
        self.steps[self.current_step].response = text
        self.current_step += 1
        return self.steps[self.current_step]

    def reset(self):
        self.current_step = 0
        for step in self.steps:
            step.response = ""

    def to_script(self) -> Script:
        return Script(pattern=self.steps[1].response.strip(), script=self.steps[2].response)
