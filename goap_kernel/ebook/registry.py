"""
eBook registry — goals and actions for AI eBook generation.

Pipeline (each step one action, all through the ProviderGateway):
    enhance_prompt → create_outline → write_chapters → review_content

World state only carries progress flags. The artifacts each step produces
(EnhancedPrompt, Outline, chapters, EBook) travel as action result data
and are picked up by later steps from ``ActionContext.previous_results``.
EBookActions also keeps the latest artifacts, so a task that resumes from
flags set by an earlier task (ebook_outline, then ebook_complete) finds
them. Enhancing a prompt starts a new book and drops the old artifacts;
so does resetting the agent's world store.

An agent finishes a book once; reset its world store to
``EBOOK_INITIAL_STATE`` before generating the next one.
"""

import logging
import math
from typing import Any, Dict, List, Optional, Type, TypeVar

from pydantic import BaseModel

from goap_kernel.execution.executor import AgentExecutor
from goap_kernel.gateway.service import ProviderGateway
from goap_kernel.models.config import ExecutorConfig, PlannerConfig
from goap_kernel.models.ebook import (
    Chapter,
    EBook,
    EBookInput,
    EBookMetadata,
    EnhancedPrompt,
    Language,
    Outline,
)
from goap_kernel.models.execution import ActionContext
from goap_kernel.models.planning import Action, Goal
from goap_kernel.models.provider import GenerationOptions
from goap_kernel.observability.monitor import PerformanceMonitor

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=BaseModel)

EBOOK_INITIAL_STATE: Dict[str, bool] = {
    "prompt_enhanced": False,
    "outline_ready": False,
    "chapters_written": False,
    "content_reviewed": False,
}

WORDS_PER_MINUTE = 200

_LANGUAGE_NAMES = {Language.EN: "English", Language.DE: "German"}


def build_ebook_goals() -> List[Goal]:
    return [
        Goal(
            name="ebook_complete",
            priority=10,
            conditions={"content_reviewed": True},
        ),
        Goal(
            name="ebook_outline",
            priority=5,
            conditions={"outline_ready": True},
        ),
    ]


def _input_from(context: ActionContext) -> EBookInput:
    return EBookInput.model_validate(context.task_context)


def _latest(context: ActionContext, model: Type[T]) -> Optional[T]:
    """Most recent result payload of type ``model`` from earlier steps."""
    for result in reversed(context.previous_results):
        if isinstance(result.data, model):
            return result.data
    return None


def _latest_chapters(context: ActionContext) -> Optional[List[Chapter]]:
    for result in reversed(context.previous_results):
        data = result.data
        if isinstance(data, list) and data and all(isinstance(c, Chapter) for c in data):
            return data
    return None


def _word_count(text: str) -> int:
    return len(text.split())


class EBookActions:
    """Action behaviors bound to one gateway, plus the current book's artifacts."""

    def __init__(self, gateway: ProviderGateway, options: Optional[GenerationOptions] = None):
        self.gateway = gateway
        self.options = options or GenerationOptions()
        self.artifacts: Dict[str, Any] = {}

    def clear(self) -> None:
        self.artifacts.clear()

    def _with(self, **overrides: Any) -> GenerationOptions:
        return self.options.model_copy(update=overrides)

    def _require(self, context: ActionContext, model: Type[T]) -> T:
        found = _latest(context, model)
        if found is None:
            found = self.artifacts.get(model.__name__)
        if found is None:
            raise LookupError(f"No {model.__name__} produced by an earlier step")
        return found

    def _require_chapters(self, context: ActionContext) -> List[Chapter]:
        found = _latest_chapters(context) or self.artifacts.get("chapters")
        if not found:
            raise LookupError("No chapters produced by an earlier step")
        return found

    async def enhance_prompt(self, context: ActionContext) -> EnhancedPrompt:
        request = _input_from(context)
        language = _LANGUAGE_NAMES[request.language]
        prompt = (
            f"Improve the following eBook request into a detailed writing brief in {language}.\n"
            f"Input type: {request.type.value}\n"
            f"Tone: {request.tone.value if request.tone else 'casual'}\n"
            f"Audience: {request.audience or 'general readers'}\n"
            f"Target length: {request.target_length or 15000} words\n\n"
            f"Request:\n{request.content}\n\n"
            "Answer as JSON with the fields original, enhanced, structure (list of section "
            "names), target_audience, estimated_length, language and complexity (1-10)."
        )
        enhanced = await self.gateway.generate_object(EnhancedPrompt, prompt, self._with(temperature=0.5))
        self.artifacts.clear()
        self.artifacts[EnhancedPrompt.__name__] = enhanced
        logger.info("Prompt enhanced (%d sections, complexity %d)", len(enhanced.structure), enhanced.complexity)
        return enhanced

    async def create_outline(self, context: ActionContext) -> Outline:
        enhanced = self._require(context, EnhancedPrompt)
        language = _LANGUAGE_NAMES[enhanced.language]
        prompt = (
            f"Create a chapter outline in {language} for this eBook brief:\n{enhanced.enhanced}\n\n"
            f"Suggested structure: {', '.join(enhanced.structure)}\n"
            f"Audience: {enhanced.target_audience}\n\n"
            "Answer as JSON with title, description and chapters (each with title and summary)."
        )
        outline = await self.gateway.generate_object(Outline, prompt, self._with(temperature=0.5))
        self.artifacts[Outline.__name__] = outline
        logger.info("Outline created: '%s' with %d chapters", outline.title, len(outline.chapters))
        return outline

    async def write_chapters(self, context: ActionContext) -> List[Chapter]:
        enhanced = self._require(context, EnhancedPrompt)
        outline = self._require(context, Outline)
        language = _LANGUAGE_NAMES[enhanced.language]
        per_chapter = max(1, enhanced.estimated_length // len(outline.chapters)) if enhanced.estimated_length else None

        chapters: List[Chapter] = []
        for order, plan in enumerate(outline.chapters, start=1):
            prompt = (
                f"Write chapter {order} of the eBook '{outline.title}' in {language}.\n"
                f"Chapter title: {plan.title}\n"
                f"Chapter summary: {plan.summary}\n"
                f"Book brief: {enhanced.enhanced}\n"
            )
            if per_chapter:
                prompt += f"Aim for about {per_chapter} words.\n"
            response = await self.gateway.generate_text(prompt, self.options)
            chapters.append(Chapter(
                title=plan.title,
                content=response.content,
                order=order,
                word_count=_word_count(response.content),
                language=enhanced.language,
            ))
        self.artifacts["chapters"] = chapters
        return chapters

    async def review_content(self, context: ActionContext) -> EBook:
        enhanced = self._require(context, EnhancedPrompt)
        outline = self._require(context, Outline)
        drafts = self._require_chapters(context)
        language = _LANGUAGE_NAMES[enhanced.language]

        reviewed: List[Chapter] = []
        for chapter in drafts:
            prompt = (
                f"Correct grammar, spelling and style of the following {language} text. "
                f"Return only the corrected text.\n\n{chapter.content}"
            )
            response = await self.gateway.generate_text(prompt, self._with(temperature=0.3))
            reviewed.append(chapter.model_copy(update={
                "content": response.content,
                "word_count": _word_count(response.content),
            }))

        word_count = sum(c.word_count for c in reviewed)
        return EBook(
            title=outline.title,
            description=outline.description,
            chapters=reviewed,
            metadata=EBookMetadata(
                language=enhanced.language,
                word_count=word_count,
                chapter_count=len(reviewed),
                estimated_reading_time=math.ceil(word_count / WORDS_PER_MINUTE),
            ),
        )


def build_ebook_actions(
    gateway: ProviderGateway,
    options: Optional[GenerationOptions] = None,
    behaviors: Optional[EBookActions] = None,
) -> List[Action]:
    behaviors = behaviors or EBookActions(gateway, options)
    return [
        Action(
            name="enhance_prompt",
            cost=1,
            preconditions={"prompt_enhanced": False},
            effects={"prompt_enhanced": True},
            timeout_seconds=60,
            behavior=behaviors.enhance_prompt,
        ),
        Action(
            name="create_outline",
            cost=1,
            preconditions={"prompt_enhanced": True, "outline_ready": False},
            effects={"outline_ready": True},
            timeout_seconds=60,
            behavior=behaviors.create_outline,
        ),
        Action(
            name="write_chapters",
            cost=1,
            preconditions={"outline_ready": True, "chapters_written": False},
            effects={"chapters_written": True},
            timeout_seconds=600,
            behavior=behaviors.write_chapters,
        ),
        Action(
            name="review_content",
            cost=1,
            preconditions={"chapters_written": True, "content_reviewed": False},
            effects={"content_reviewed": True},
            timeout_seconds=300,
            behavior=behaviors.review_content,
        ),
    ]


def build_ebook_agent(
    gateway: ProviderGateway,
    name: str = "ebook",
    monitor: Optional[PerformanceMonitor] = None,
    planner_config: Optional[PlannerConfig] = None,
    executor_config: Optional[ExecutorConfig] = None,
    options: Optional[GenerationOptions] = None,
) -> AgentExecutor:
    behaviors = EBookActions(gateway, options)
    agent = AgentExecutor(
        name=name,
        goals=build_ebook_goals(),
        actions=build_ebook_actions(gateway, behaviors=behaviors),
        initial_state=EBOOK_INITIAL_STATE,
        planner_config=planner_config,
        config=executor_config,
        monitor=monitor,
    )
    agent.world_store.on_reset(behaviors.clear)
    return agent
