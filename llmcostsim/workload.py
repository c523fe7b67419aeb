# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0
"""Workload descriptions: Who sends how many requests, and how their prompts are composed

Every request in a workload is modelled as a prompt of (in order) a system prompt, shared context
(e.g. a rubric or source text, common to all actors), a per-actor submission, and a variable
instruction - plus the generated output. For conversational workloads, the "instruction" is
instead a capped chat history.
"""

# Python Built-Ins:
from __future__ import annotations
from dataclasses import dataclass, field, fields, replace
from enum import Enum
from typing import Any

# Local Dependencies:
from .accumulation import effective_instruction_tokens, effective_submission_tokens
from .pricing import CacheTTL, validate_cache_ttl
from .serde import JSONableBase


class WorkloadParameter(str, Enum):
    """Numeric workload fields that can be varied in a sensitivity sweep"""

    STUDENTS = "students"
    TURNS_PER_STUDENT = "turns_per_student"
    SYSTEM_TOKENS = "system_tokens"
    SHARED_CONTEXT_TOKENS = "shared_context_tokens"
    SUBMISSION_TOKENS = "submission_tokens"
    INSTRUCTION_TOKENS = "instruction_tokens"
    OUTPUT_TOKENS = "output_tokens"

    @property
    def is_count(self) -> bool:
        """True for actor/turn counts, False for token counts"""
        return self in (WorkloadParameter.STUDENTS, WorkloadParameter.TURNS_PER_STUDENT)


@dataclass(frozen=True)
class WorkloadSpec(JSONableBase):
    """An immutable description of one workload to cost

    Create a new workload (e.g. with `replace()` or `with_parameter()`) for every parameter change,
    rather than mutating one in place.

    Args:
        students: Number of independent actors (e.g. students in a class), at least 1
        turns_per_student: Requests (or chat turns) each actor sends, at least 1
        system_tokens: System prompt tokens, shared by every request
        shared_context_tokens: Shared reference material tokens, common to all actors
        submission_tokens: Per-actor submission tokens (final length, if progressive)
        instruction_tokens: Per-request instruction tokens, or the chat history cap for
            conversational workloads
        output_tokens: Generated tokens per request
        conversational: Whether `instruction_tokens` is a growing chat history cap
        progressive_submission: Whether the submission grows from 0 to its full size over turns
        submission_cacheable: Whether each actor's submission stays stable across their turns
        cache_ttl: Requested prompt cache TTL
        summarization_enabled: Whether chat history is periodically summarized
        summary_size: Tokens in each generated chat summary
    """

    students: int
    turns_per_student: int
    system_tokens: int = 0
    shared_context_tokens: int = 0
    submission_tokens: int = 0
    instruction_tokens: int = 0
    output_tokens: int = 0
    conversational: bool = False
    progressive_submission: bool = False
    submission_cacheable: bool = True
    cache_ttl: CacheTTL = "5min"
    summarization_enabled: bool = False
    summary_size: int = 500

    def __post_init__(self):
        if self.students < 1:
            raise ValueError(f"students must be a positive integer, got {self.students}")
        if self.turns_per_student < 1:
            raise ValueError(
                f"turns_per_student must be a positive integer, got {self.turns_per_student}"
            )
        for name in (
            "system_tokens",
            "shared_context_tokens",
            "submission_tokens",
            "instruction_tokens",
            "output_tokens",
            "summary_size",
        ):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} must be non-negative, got {getattr(self, name)}")
        validate_cache_ttl(self.cache_ttl)

    @property
    def total_requests(self) -> int:
        return self.students * self.turns_per_student

    @property
    def shared_prefix_tokens(self) -> int:
        """Tokens common to every request across all actors (system prompt + shared context)"""
        return self.system_tokens + self.shared_context_tokens

    @property
    def summarization_active(self) -> bool:
        """Summarization only applies to conversational workloads"""
        return self.summarization_enabled and self.conversational

    @property
    def effective_instruction_tokens(self) -> float:
        return effective_instruction_tokens(
            self.instruction_tokens,
            self.turns_per_student,
            self.output_tokens,
            self.conversational,
        )

    @property
    def effective_submission_tokens(self) -> float:
        return effective_submission_tokens(
            self.submission_tokens, self.turns_per_student, self.progressive_submission
        )

    def get_parameter(self, parameter: WorkloadParameter | str) -> int:
        return getattr(self, WorkloadParameter(parameter).value)

    def with_parameter(self, parameter: WorkloadParameter | str, value: int) -> WorkloadSpec:
        """Copy of this workload with one sweepable parameter changed"""
        return replace(self, **{WorkloadParameter(parameter).value: value})

    def replace(self, **changes: Any) -> WorkloadSpec:
        return replace(self, **changes)


@dataclass(frozen=True)
class WorkloadTemplate:
    """A named, ready-made workload preset with its recommended defaults"""

    label: str
    description: str
    preset: dict[str, int]
    submission_cacheable: bool
    conversational: bool
    progressive_submission: bool
    default_summarization_enabled: bool = False
    default_summary_size: int = 500
    default_sensitivity_param: WorkloadParameter = WorkloadParameter.SHARED_CONTEXT_TOKENS
    default_cache_ttl: CacheTTL = "5min"
    segment_labels: dict[str, str] = field(default_factory=dict)

    def to_workload(self, **overrides: Any) -> WorkloadSpec:
        """Create a WorkloadSpec from this template, with optional field overrides"""
        valid_fields = {f.name for f in fields(WorkloadSpec)}
        unknown = set(overrides) - valid_fields
        if unknown:
            raise ValueError(f"Unknown WorkloadSpec field(s): {sorted(unknown)}")
        args = {
            **self.preset,
            "submission_cacheable": self.submission_cacheable,
            "conversational": self.conversational,
            "progressive_submission": self.progressive_submission,
            "summarization_enabled": self.default_summarization_enabled,
            "summary_size": self.default_summary_size,
            "cache_ttl": self.default_cache_ttl,
        }
        args.update(overrides)
        return WorkloadSpec(**args)


def _preset(students, turns, system, context, submission, instruction, output) -> dict[str, int]:
    return {
        "students": students,
        "turns_per_student": turns,
        "system_tokens": system,
        "shared_context_tokens": context,
        "submission_tokens": submission,
        "instruction_tokens": instruction,
        "output_tokens": output,
    }


_ASSESSMENT_LABELS = {
    "system": "System Prompt",
    "context": "Context/Rubric",
    "submission": "Submission",
    "instruction": "Instruction",
}
_CHAT_LABELS = {
    "system": "System Prompt",
    "context": "Assignment Context",
    "submission": "Student Draft",
    "instruction": "Chat History",
}

TEMPLATES: dict[str, WorkloadTemplate] = {
    "graf-simple": WorkloadTemplate(
        label="GRAF+ Simple",
        description="First-pass literary-analysis feedback on a stable essay submission.",
        preset=_preset(30, 5, 1000, 500, 2000, 200, 500),
        submission_cacheable=True,
        conversational=False,
        progressive_submission=False,
        segment_labels=_ASSESSMENT_LABELS,
    ),
    "graf-literary": WorkloadTemplate(
        label="GRAF+ w/ Context",
        description="Literary-analysis feedback with a full novel (~60K tokens) as shared context.",
        preset=_preset(30, 5, 1000, 60000, 2000, 200, 500),
        submission_cacheable=True,
        conversational=False,
        progressive_submission=False,
        segment_labels={**_ASSESSMENT_LABELS, "context": "Full Text Context"},
    ),
    "clarity-chat": WorkloadTemplate(
        label="Clarity Chat",
        description="Writing-assistant chatbot, with a draft that grows during the conversation.",
        preset=_preset(30, 12, 1000, 1000, 2000, 2000, 400),
        submission_cacheable=False,
        conversational=True,
        progressive_submission=True,
        default_cache_ttl="1hour",
        segment_labels=_CHAT_LABELS,
    ),
    "clarity-chat-xl": WorkloadTemplate(
        label="Clarity Chat XL",
        description="Extended writing-assistant session where periodic summarization pays off.",
        preset=_preset(30, 40, 1000, 1000, 1500, 3650, 300),
        submission_cacheable=False,
        conversational=True,
        progressive_submission=True,
        default_summarization_enabled=True,
        default_summary_size=1000,
        default_sensitivity_param=WorkloadParameter.TURNS_PER_STUDENT,
        default_cache_ttl="1hour",
        segment_labels=_CHAT_LABELS,
    ),
    "interactive-ai": WorkloadTemplate(
        label="Interactive AI Assignment",
        description="Character-interview assignment over large shared source material.",
        preset=_preset(30, 20, 1000, 50000, 20, 1660, 133),
        submission_cacheable=True,
        conversational=True,
        progressive_submission=False,
        default_summarization_enabled=True,
        default_cache_ttl="1hour",
        segment_labels={
            "system": "System Prompt",
            "context": "Source Material",
            "submission": "Question",
            "instruction": "Conv. Context",
        },
    ),
}
DEFAULT_TEMPLATE = "graf-simple"


def workload_from_template(name: str = DEFAULT_TEMPLATE, **overrides: Any) -> WorkloadSpec:
    """Create a WorkloadSpec from one of the built-in `TEMPLATES`"""
    try:
        template = TEMPLATES[name]
    except KeyError:
        raise ValueError(
            f"Unknown workload template '{name}': Expected one of {list(TEMPLATES)}"
        ) from None
    return template.to_workload(**overrides)
