"""Animation collaborator - timed effects with completion callbacks."""

from .animator import (
    Animator,
    AnimationHandle,
    AnimationPhase,
    TimerAnimator,
    DEFAULT_SCOPE,
)

__all__ = ['Animator', 'AnimationHandle', 'AnimationPhase', 'TimerAnimator', 'DEFAULT_SCOPE']
