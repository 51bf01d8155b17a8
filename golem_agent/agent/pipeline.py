"""Per-message orchestration: classify, admit, plan, assemble, execute, reply."""

from __future__ import annotations

from datetime import datetime

from loguru import logger

from golem_agent.agent.context import ContextAssembler
from golem_agent.agent.executor import Executor, TierBinding
from golem_agent.agent.media import MediaNormalizer
from golem_agent.agent.planner import ModelTier, Planner, build_planner_metadata
from golem_agent.agent.prompts import PromptSet
from golem_agent.agent.ratelimit import RateLimiter
from golem_agent.agent.transcripts import TranscriptionCache, TranscriptionService
from golem_agent.agent.triggers import TriggerAction, TriggerClassifier, build_help_text
from golem_agent.agent.window import HistoryWindowResolver, TimestampRecovery
from golem_agent.channels.base import BaseChannel, ChatMessage
from golem_agent.config.schema import BotConfig, Config
from golem_agent.providers.factory import build_tier_providers, build_transcriber
from golem_agent.utils.helpers import truncate, utc_now

ERROR_REPLY = "🐛 Error processing your request."


class MessagePipeline:
    """
    Runs one turn per inbound message.

    Nothing is shared between turns except the rate table and the
    transcription cache, so turns may run concurrently on one loop.
    """

    def __init__(
        self,
        channel: BaseChannel,
        bot: BotConfig,
        classifier: TriggerClassifier,
        rate_limiter: RateLimiter,
        planner: Planner,
        assembler: ContextAssembler,
        executor: Executor,
    ):
        self.channel = channel
        self.bot = bot
        self.classifier = classifier
        self.rate_limiter = rate_limiter
        self.planner = planner
        self.assembler = assembler
        self.executor = executor

    @property
    def marker(self) -> str:
        return self.bot.ignore_loop_emoji

    def rate_limit_notice(self) -> str:
        limits = self.bot.rate_limit
        window = "hour" if limits.window_hours == 1 else f"{limits.window_hours:g}h"
        return f"🛑 Rate limit exceeded ({limits.max_requests} requests/{window}). Try again later."

    def is_owner(self, message: ChatMessage) -> bool:
        return message.from_self or message.sender in self.bot.owner_ids

    async def handle(self, message: ChatMessage, now: datetime | None = None) -> None:
        try:
            await self._run_turn(message, now)
        except Exception:
            logger.exception(f"Error handling message {message.id}")
            try:
                await self.channel.reply(message, f"{self.marker}{ERROR_REPLY}")
            except Exception as e:
                logger.error(f"Failed to send error reply for {message.id}: {e}")

    async def _run_turn(self, message: ChatMessage, now: datetime | None) -> None:
        decision = self.classifier.classify(message.body)

        if decision.action is TriggerAction.IGNORE_LOOP:
            logger.trace(f"Ignoring own reply {message.id}")
            return
        if decision.action is TriggerAction.IGNORE_UNTRIGGERED:
            logger.trace(f"Ignoring untriggered message {message.id}")
            return
        if decision.action is TriggerAction.HELP:
            await self.channel.reply(message, build_help_text(self.marker))
            return

        if not self.is_owner(message) and not self.rate_limiter.admit(message.sender):
            logger.warning(f"Rate limit exceeded for {message.sender}")
            await self.channel.reply(message, f"{self.marker} {self.rate_limit_notice()}")
            return

        logger.info(f'Processing from {message.sender}: "{truncate(decision.body)}"')
        chat_id = self.channel.get_chat_id(message)
        current = now or utc_now()

        history_context = await self.assembler.build_planner_context(message, chat_id)
        sender_name = await self.assembler.normalizer.sender_label(message)
        metadata = build_planner_metadata(sender_name, current)

        plan = await self.planner.plan(decision.body, metadata, history_context)
        logger.info(f"[PLANNER] Plan: {plan.to_dict()}")

        units = await self.assembler.assemble(
            message,
            chat_id,
            plan,
            decision.body,
            explicit_transcription=decision.explicit_transcription,
            now=current,
        )
        reply = await self.executor.execute(plan, units)
        await self.channel.reply(message, f"{self.marker} {reply}")

    @classmethod
    def from_config(
        cls,
        config: Config,
        channel: BaseChannel,
        providers: dict | None = None,
        transcriber=None,
        prompts: PromptSet | None = None,
    ) -> "MessagePipeline":
        """Wire a pipeline from configuration; providers and transcriber may be injected."""
        if providers is None:
            providers = build_tier_providers(config)
        if transcriber is None and config.features.audio_transcription:
            transcriber = build_transcriber(config)
        prompts = prompts or PromptSet.load(config.prompts_path)

        bot = config.bot
        classifier = TriggerClassifier(
            triggers=bot.triggers,
            loop_marker=bot.ignore_loop_emoji,
            help_phrases=bot.help_phrases,
            transcribe_prefixes=bot.transcribe_prefixes,
        )
        transcripts = (
            TranscriptionService(transcriber, TranscriptionCache(config.transcription_cache_path))
            if transcriber is not None
            else None
        )
        normalizer = MediaNormalizer(
            channel,
            transcripts,
            clean=classifier.clean_body,
            owner_name=bot.owner_name,
            document_extensions=config.context.document_extensions,
            audio_enabled=config.features.audio_transcription,
            images_enabled=config.features.image_analysis,
        )
        assembler = ContextAssembler(
            channel,
            normalizer,
            HistoryWindowResolver(channel, config.context.history_fetch_limit, config.context.fallback_hours),
            TimestampRecovery(channel, config.context.deep_search_limit),
            clean=classifier.clean_body,
            emphasis_kinds=config.context.emphasis_kinds,
        )

        planner_cfg = config.model_for("planner")
        planner = Planner(
            providers["planner"],
            prompts.planner,
            model=planner_cfg.model_name,
            temperature=planner_cfg.temperature,
            max_tokens=planner_cfg.max_tokens,
        )

        tiers = {}
        for tier in ModelTier:
            model_cfg = config.model_for(tier.value)
            tiers[tier] = TierBinding(
                provider=providers[tier.value],
                model=model_cfg.model_name,
                temperature=model_cfg.temperature,
                max_tokens=model_cfg.max_tokens,
            )
        executor = Executor(tiers, prompts.executor, prompts.tech_stack)

        return cls(
            channel=channel,
            bot=bot,
            classifier=classifier,
            rate_limiter=RateLimiter(bot.rate_limit.max_requests, bot.rate_limit.window_hours),
            planner=planner,
            assembler=assembler,
            executor=executor,
        )
