"""
Productivity tip service.

A tip comes from the first provider that answers (OpenRouter, then
Together AI), or from a static table when neither does. Generated tips
are cached for an hour and every generated tip counts against the
caller's daily quota. Cache hits and rate-limited answers are free.
"""
import hashlib
import logging
import re
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Dict, List, Optional

import openai
from openai import OpenAI
from django.conf import settings
from django.core.cache import cache
from django.utils import timezone

logger = logging.getLogger(__name__)

TIP_CACHE_SECONDS = 60 * 60
USAGE_TTL = timedelta(days=2)
COMPREHENSIVE_COST = 3

SYSTEM_PROMPT = (
    "You are a productivity expert assistant. "
    "Provide concise, actionable productivity tips and strategies."
)

RATE_LIMITED_TIP = (
    "You've reached your daily AI tip limit. Try breaking down your task into "
    "smaller, manageable steps and tackle them one at a time using the Pomodoro Technique."
)

NO_TASKS_TODAY_TIP = (
    "Great! You have no urgent tasks due today. Consider using this time to work "
    "on future tasks or plan ahead for upcoming deadlines."
)

FALLBACK_TIPS = {
    'work': {
        'high': "For high-priority work tasks, use the Eisenhower Matrix to distinguish between urgent and important. Start with deep work sessions of 90 minutes for maximum focus.",
        'medium': "Break your work task into 25-minute focused sessions using the Pomodoro Technique. Take 5-minute breaks between sessions to maintain productivity.",
        'low': "Batch similar work tasks together and tackle them during your lower-energy periods. Use this time to clear smaller items from your task list.",
        'urgent': "For urgent work tasks, eliminate all distractions, communicate your unavailability, and focus solely on the task until completion.",
    },
    'personal': {
        'high': "Schedule personal high-priority tasks during your peak energy hours. Treat them with the same importance as work commitments.",
        'medium': "Link personal tasks to existing habits. For example, do this task right after your morning coffee or before dinner.",
        'low': "Use waiting time or transition periods for low-priority personal tasks. Keep a mobile-friendly version ready.",
        'urgent': "For urgent personal matters, delegate what you can and focus on what only you can do. Don't let perfectionism slow you down.",
    },
    'study': {
        'high': "Use active recall and spaced repetition for high-priority study topics. Test yourself frequently rather than just re-reading.",
        'medium': "Create a distraction-free study environment and use the Feynman Technique: explain the concept in simple terms as if teaching someone else.",
        'low': "Use audio resources or flashcards for low-priority study materials during commutes or exercise.",
        'urgent': "Focus on understanding core concepts first, then move to details. Use practice problems to identify knowledge gaps quickly.",
    },
    'default': {
        'high': "Break this high-priority task into smaller, specific actions. Complete the most challenging part when your energy is highest.",
        'medium': "Set a specific time to work on this task and remove potential distractions from your environment beforehand.",
        'low': "Pair this task with something enjoyable or do it during a natural transition time in your day.",
        'urgent': "Focus on progress, not perfection. Identify the minimum viable completion criteria and work towards that first.",
    },
}


@dataclass(frozen=True)
class Tip:
    tip: str
    source: str
    model: Optional[str] = None
    category: Optional[str] = None
    priority: Optional[str] = None
    is_rate_limited: bool = False
    type: Optional[str] = None


@dataclass(frozen=True)
class Usage:
    daily_usage: int
    daily_limit: int
    remaining: int


@dataclass(frozen=True)
class TipProvider:
    """An OpenAI-compatible chat completions endpoint."""
    name: str
    base_url: str
    model: str
    model_label: str
    api_key_setting: str
    placeholder_key: str
    extra_headers: Dict[str, str] = field(default_factory=dict)

    def api_key(self) -> Optional[str]:
        key = (getattr(settings, self.api_key_setting, '') or '').strip()
        if not key or key == self.placeholder_key:
            return None
        return key


PROVIDERS = [
    TipProvider(
        name="OpenRouter AI",
        base_url="https://openrouter.ai/api/v1",
        model="microsoft/wizardlm-2-8x22b",
        model_label="WizardLM-2",
        api_key_setting='OPENROUTER_API_KEY',
        placeholder_key='your-openrouter-api-key',
        extra_headers={
            'HTTP-Referer': 'https://task-manager-app.com',
            'X-Title': 'Task Manager App',
        },
    ),
    TipProvider(
        name="Together AI",
        base_url="https://api.together.xyz/v1",
        model="meta-llama/Llama-2-7b-chat-hf",
        model_label="Llama-2-7B",
        api_key_setting='TOGETHER_API_KEY',
        placeholder_key='your-together-api-key',
    ),
]


class QuotaExceeded(Exception):
    """Raised when a request needs more AI calls than the user has left today."""

    def __init__(self, usage: Usage):
        super().__init__("Insufficient AI quota for comprehensive tips")
        self.usage = usage


def build_prompt(description: str, priority: str, category: str) -> str:
    return (
        f"Task: {description}\n"
        f"Priority: {priority}\n"
        f"Category: {category}\n\n"
        "Please provide a specific, actionable productivity tip to help complete this task efficiently. Focus on:\n"
        "1. Time management strategies\n"
        "2. Focus and concentration techniques\n"
        "3. Task breakdown approaches\n"
        "4. Relevant tools or methods\n\n"
        "Keep the response concise (2-3 sentences) and practical."
    )


def fallback_tip(category: str, priority: str) -> Tip:
    tips = FALLBACK_TIPS.get(category, FALLBACK_TIPS['default'])
    return Tip(
        tip=tips.get(priority, tips['medium']),
        source="Fallback Tips",
        category=category,
        priority=priority,
    )


class TipService:
    """
    Generates productivity tips with quota, caching and provider fallback.

    Counters and cached tips live in the Django cache, so they are
    process-local with the default LocMem backend.
    """

    def __init__(self, providers: Optional[List[TipProvider]] = None):
        self.providers = PROVIDERS if providers is None else providers

    # =========================================================================
    # Quota
    # =========================================================================

    @property
    def daily_limit(self) -> int:
        return settings.AI_DAILY_LIMIT

    def _usage_key(self, user_id) -> str:
        return f"ai:usage:{user_id}:{timezone.localdate().isoformat()}"

    def _used_today(self, user_id) -> int:
        return cache.get(self._usage_key(user_id), 0)

    def check_rate_limit(self, user_id) -> bool:
        """True while the user still has tips left today."""
        return self._used_today(user_id) < self.daily_limit

    def increment_usage(self, user_id) -> int:
        key = self._usage_key(user_id)
        cache.add(key, 0, int(USAGE_TTL.total_seconds()))
        return cache.incr(key)

    def usage(self, user_id) -> Usage:
        used = self._used_today(user_id)
        return Usage(
            daily_usage=used,
            daily_limit=self.daily_limit,
            remaining=max(0, self.daily_limit - used),
        )

    def require_quota(self, user_id, needed: int) -> Usage:
        usage = self.usage(user_id)
        if usage.remaining < needed:
            raise QuotaExceeded(usage)
        return usage

    # =========================================================================
    # Generation
    # =========================================================================

    @staticmethod
    def cache_key(description: str, priority: str, category: str) -> str:
        normalized = re.sub(r'[^a-z0-9]', '', description.lower())
        digest = hashlib.sha1(f"{normalized}_{priority}_{category}".encode()).hexdigest()
        return f"ai:tip:{digest}"

    def _ask(self, provider: TipProvider, prompt: str, priority: str, category: str) -> Optional[Tip]:
        api_key = provider.api_key()
        if not api_key:
            logger.debug(f"{provider.name} API key not configured, skipping")
            return None

        client = OpenAI(
            base_url=provider.base_url,
            api_key=api_key,
            timeout=settings.AI_REQUEST_TIMEOUT,
            max_retries=0,
        )
        try:
            response = client.chat.completions.create(
                model=provider.model,
                messages=[
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {"role": "user", "content": prompt},
                ],
                max_tokens=200,
                temperature=0.7,
                extra_headers=provider.extra_headers or None,
            )
        except openai.OpenAIError as e:
            logger.warning(f"{provider.name} API error: {e}")
            return None

        if not response.choices:
            return None
        content = (response.choices[0].message.content or '').strip()
        if not content:
            return None

        return Tip(
            tip=content,
            source=provider.name,
            model=provider.model_label,
            category=category,
            priority=priority,
        )

    def generate_tip(self, description: str, user_id, priority: str = 'medium', category: str = 'general') -> Tip:
        """
        Return a tip for the task description.

        Order: quota check, cache, each provider, static table. Only a
        freshly produced tip is cached and counted.
        """
        try:
            if not self.check_rate_limit(user_id):
                return Tip(tip=RATE_LIMITED_TIP, source="Rate Limited", is_rate_limited=True)

            key = self.cache_key(description, priority, category)
            cached = cache.get(key)
            if cached is not None:
                return cached

            prompt = build_prompt(description, priority, category)
            tip = None
            for provider in self.providers:
                tip = self._ask(provider, prompt, priority, category)
                if tip:
                    break
                logger.info(f"{provider.name} gave no tip, trying next source")

            if tip is None:
                tip = fallback_tip(category, priority)

            cache.set(key, tip, TIP_CACHE_SECONDS)
            self.increment_usage(user_id)
            return tip
        except Exception as e:
            logger.exception(f"Tip generation failed for user {user_id}: {e}")
            return fallback_tip(category, priority)

    def comprehensive_tips(self, description: str, user_id, priority: str = 'medium',
                           category: str = 'general') -> Dict[str, Tip]:
        """Planning, time management and focus tips. Needs three requests of quota."""
        self.require_quota(user_id, COMPREHENSIVE_COST)
        return {
            'planning': self.generate_tip(f"Planning approach for: {description}", user_id, priority, category),
            'time_management': self.generate_tip(f"Time management for: {description}", user_id, priority, category),
            'focus': self.generate_tip(f"Focus strategies for: {description}", user_id, priority, category),
        }

    def daily_insight(self, user_id, tasks: list) -> Tip:
        """
        A planning tip for the tasks due today.

        With nothing due the canned no-urgent-tasks insight is returned
        and no quota is spent.
        """
        if not tasks:
            return Tip(tip=NO_TASKS_TODAY_TIP, source="Daily Insights", type='no-urgent-tasks')

        summary = '. '.join(
            f"{task.priority} priority {task.category} task: {task.title}" for task in tasks
        )
        return self.generate_tip(
            f"Daily planning for multiple tasks: {summary}",
            user_id,
            priority='high',
            category='planning',
        )


def priority_breakdown(tasks: list) -> Dict[str, int]:
    breakdown = {'urgent': 0, 'high': 0, 'medium': 0, 'low': 0}
    for task in tasks:
        if task.priority in breakdown:
            breakdown[task.priority] += 1
    return breakdown


tip_service = TipService()
