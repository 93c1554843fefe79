from dataclasses import dataclass

ANSWER_UNIQUENESS_MODES = ('participant', 'team')


@dataclass(frozen=True)
class GameRules:
    """Tunables read once from the app config."""

    min_questions: int = 3
    code_length: int = 6
    answer_uniqueness: str = 'participant'
    enforce_deadline: bool = False
    deadline_grace_sec: int = 2

    @classmethod
    def from_config(cls, config):
        uniqueness = config.get('ANSWER_UNIQUENESS', 'participant')
        if uniqueness not in ANSWER_UNIQUENESS_MODES:
            raise ValueError(f"ANSWER_UNIQUENESS must be one of {ANSWER_UNIQUENESS_MODES}, got {uniqueness!r}")
        return cls(
            min_questions=int(config.get('MIN_QUESTIONS', 3)),
            code_length=int(config.get('SESSION_CODE_LENGTH', 6)),
            answer_uniqueness=uniqueness,
            enforce_deadline=bool(config.get('ENFORCE_QUESTION_DEADLINE', False)),
            deadline_grace_sec=int(config.get('QUESTION_DEADLINE_GRACE_SEC', 2)),
        )
