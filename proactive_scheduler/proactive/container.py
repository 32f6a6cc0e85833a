"""Builds the proactive scheduling components with their collaborators."""
from dataclasses import dataclass
from typing import Optional

from proactive_scheduler.config import settings
from proactive_scheduler.proactive.confirmation import ConfirmationHandler
from proactive_scheduler.proactive.detection import SchedulingDetector
from proactive_scheduler.proactive.jobs import BackgroundJobQueue
from proactive_scheduler.proactive.orchestrator import ProactiveOrchestrator
from proactive_scheduler.proactive.suggestions import SuggestionStore
from proactive_scheduler.proactive.time_slots import TimeSlotGenerator
from proactive_scheduler.services.completion import CompletionService, OpenAICompletionService
from proactive_scheduler.services.messages import MessageStore
from proactive_scheduler.services.profiles import DatabaseProfileStore, ProfileStore
from proactive_scheduler.services.realtime import SuggestionNotifier


@dataclass
class ProactiveServices:
    message_store: MessageStore
    suggestion_store: SuggestionStore
    detector: SchedulingDetector
    slot_generator: TimeSlotGenerator
    confirmation: ConfirmationHandler
    orchestrator: ProactiveOrchestrator
    jobs: BackgroundJobQueue


def build_services(
    completion_service: Optional[CompletionService] = None,
    profile_store: Optional[ProfileStore] = None,
    socketio=None,
    session_factory=None,
    jobs: Optional[BackgroundJobQueue] = None
) -> ProactiveServices:
    """Wire every component explicitly; nothing reaches for globals at call time."""
    message_store = MessageStore(session_factory)
    suggestion_store = SuggestionStore(session_factory)
    detector = SchedulingDetector(
        completion_service or OpenAICompletionService(),
        message_store=message_store
    )
    slot_generator = TimeSlotGenerator(
        profile_store or DatabaseProfileStore(session_factory),
        suggestion_store=suggestion_store
    )
    confirmation = ConfirmationHandler(suggestion_store, message_store)
    jobs = jobs or BackgroundJobQueue()
    orchestrator = ProactiveOrchestrator(
        detector,
        suggestion_store,
        slot_generator,
        message_store,
        jobs=jobs,
        notifier=SuggestionNotifier(socketio),
        ignored_sender_ids=[settings.ASSISTANT_SENDER_ID]
    )
    return ProactiveServices(
        message_store=message_store,
        suggestion_store=suggestion_store,
        detector=detector,
        slot_generator=slot_generator,
        confirmation=confirmation,
        orchestrator=orchestrator,
        jobs=jobs
    )
