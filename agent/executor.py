"""
Plan execution driver.

Turns plan lifecycle transitions into chat turns on the plan's conversation:
approval sends the build turn, a cut-off build is resumed, a clean finish
completes the plan, and clarifying answers are handed back to the agent.
"""

import logging
from typing import Any, Awaitable, Callable, List, Optional

from agent.plan import (
    BUILD_PROMPT, CONTINUE_PROMPT, DEFAULT_CUTOFF_THRESHOLD,
    PlanStatus, PlanStore, format_answers, is_cut_off,
)
from agent.turns import Turn

logger = logging.getLogger(__name__)

# send(conversation_id, text) -> assistant turn
SendFn = Callable[[str, str], Awaitable[Any]]


class PlanExecutor:
    def __init__(
        self,
        plans: PlanStore,
        send: SendFn,
        cutoff_threshold: int = DEFAULT_CUTOFF_THRESHOLD,
        max_auto_resumes: int = 10,
    ):
        self.plans = plans
        self.send = send
        self.cutoff_threshold = cutoff_threshold
        self.max_auto_resumes = max_auto_resumes
        # Conversation the active plan was proposed in
        self.conversation_id: Optional[str] = None
        self.auto_resumes = 0

    def _require_conversation(self) -> Optional[str]:
        if self.conversation_id is None:
            logger.warning("Plan has no conversation to run in")
        return self.conversation_id

    async def approve(self) -> bool:
        if not self.plans.approve_plan():
            return False
        self.plans.start_executing()
        self.auto_resumes = 0
        conversation_id = self._require_conversation()
        if conversation_id is not None:
            await self.send(conversation_id, BUILD_PROMPT)
        return True

    async def on_turn_finished(self, conversation_id: str, turn: Optional[Turn]) -> None:
        """Called after every foreground turn; only the executing plan's conversation matters."""
        if self.plans.status != PlanStatus.EXECUTING or conversation_id != self.conversation_id:
            return
        if not is_cut_off(turn, self.cutoff_threshold):
            self.plans.complete_plan()
            return
        if self.auto_resumes >= self.max_auto_resumes:
            logger.warning(f"Plan still cut off after {self.auto_resumes} resumes; leaving it executing")
            return
        self.auto_resumes += 1
        logger.info(f"Build turn cut off, resuming ({self.auto_resumes}/{self.max_auto_resumes})")
        await self.send(conversation_id, CONTINUE_PROMPT)

    async def submit_answers(self, answers: List[str]) -> bool:
        plan = self.plans.active_plan
        if plan is None:
            return False
        questions = list(plan.data.questions or [])
        if not self.plans.answer_questions(answers):
            return False
        text = format_answers(questions, answers)
        # The agent answers with a fresh createPlan
        self.plans.clear_plan()
        conversation_id = self._require_conversation()
        if conversation_id is not None:
            await self.send(conversation_id, text)
        return True

    async def resume(self) -> bool:
        if not self.plans.resume_execution():
            return False
        self.auto_resumes = 0
        conversation_id = self._require_conversation()
        if conversation_id is not None:
            await self.send(conversation_id, CONTINUE_PROMPT)
        return True

    def reject(self) -> bool:
        return self.plans.reject_plan()

    def dismiss(self) -> None:
        self.plans.clear_plan()
        self.conversation_id = None
        self.auto_resumes = 0
