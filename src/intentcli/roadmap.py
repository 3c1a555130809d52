"""Roadmap generation: turning an intent into an ordered list of tasks.

Rules are plain data. Each ``RoadmapRule`` fires when the project uses one of
its frameworks *and* the intent text mentions one of its keywords; every
firing rule contributes its task templates in table order. When nothing
fires, a generic two-step fallback is used, so a roadmap always has at least
the leading analysis task plus one more.

Heuristic tasks are numbered ``T1``, ``T2``...; tasks derived from advisor
output are numbered ``AI-1``, ``AI-2``... so a merged roadmap still shows
where each task came from.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import FrozenSet, Iterable, List, Optional, Sequence, Tuple

from .models import Intent, Task, TaskKind
from .profile import DJANGO, EXPRESS, LARAVEL, NEST, NEXT, REACT, VUE, ProjectProfile

HEURISTIC_PREFIX = "T"
ADVISOR_PREFIX = "AI-"

ANALYZE_DESCRIPTION = "Analyze requirements"
FALLBACK_DESCRIPTIONS = ("Implement core logic", "Add tests")

# Words that never name the subject of an intent.
_STOPWORDS = {
    "a", "an", "the", "to", "for", "of", "in", "on", "with", "and", "or", "new",
    "my", "our", "some", "add", "create", "implement", "build", "make", "feature",
    "page", "component", "screen", "view", "api", "route", "endpoint", "can",
    "should", "users", "user", "be", "able", "that", "this",
}


@dataclass(frozen=True)
class TaskTemplate:
    """A task blueprint. String fields are ``str.format`` templates.

    Available fields: ``text`` (intent text), ``subject`` (lower-case slug)
    and ``Subject`` (PascalCase).
    """

    description: str
    kind: TaskKind = TaskKind.MANUAL
    command: Optional[str] = None
    target_file: Optional[str] = None
    content: Optional[str] = None

    def render(self, task_id: str, values: dict) -> Task:
        def fmt(value: Optional[str]) -> Optional[str]:
            return value.format(**values) if value is not None else None

        return Task(
            id=task_id,
            description=fmt(self.description),
            kind=self.kind,
            command=fmt(self.command),
            target_file=fmt(self.target_file),
            content=fmt(self.content),
        )


@dataclass(frozen=True)
class RoadmapRule:
    """Templates emitted when a framework and a keyword are both present."""

    name: str
    frameworks: FrozenSet[str]
    keywords: Tuple[str, ...]
    templates: Tuple[TaskTemplate, ...]

    def matches(self, lower_text: str, profile: ProjectProfile) -> bool:
        if not (self.frameworks & set(profile.detected_frameworks)):
            return False
        return any(k in lower_text for k in self.keywords)


LARAVEL_AUTH_CONTROLLER = """<?php

namespace App\\Http\\Controllers;

use Illuminate\\Http\\Request;

// Intent: {text}
class AuthController extends Controller
{{
    public function login(Request $request)
    {{
        //
    }}

    public function logout(Request $request)
    {{
        //
    }}
}}
"""

LARAVEL_ORDER_CONTROLLER = """<?php

namespace App\\Http\\Controllers;

use Illuminate\\Http\\Request;

// Intent: {text}
class OrderController extends Controller
{{
    public function index()
    {{
        //
    }}

    public function store(Request $request)
    {{
        //
    }}
}}
"""

REACT_PAGE = """import React from 'react';
import {Subject} from '../components/{Subject}';

// Intent: {text}
export default function {Subject}Page() {{
  return (
    <main>
      <{Subject} />
    </main>
  );
}}
"""

REACT_COMPONENT = """import React from 'react';

export default function {Subject}() {{
  return <section className="{subject}"></section>;
}}
"""

VUE_VIEW = """<template>
  <main>
    <{Subject} />
  </main>
</template>

<script>
// Intent: {text}
import {Subject} from '../components/{Subject}.vue';

export default {{
  name: '{Subject}View',
  components: {{ {Subject} }},
}};
</script>
"""

VUE_COMPONENT = """<template>
  <section class="{subject}"></section>
</template>

<script>
export default {{
  name: '{Subject}',
}};
</script>
"""

EXPRESS_ROUTE = """const express = require('express');

// Intent: {text}
const router = express.Router();

router.get('/{subject}', (req, res) => {{
  res.json([]);
}});

module.exports = router;
"""

NEST_CONTROLLER = """import {{ Controller, Get }} from '@nestjs/common';

// Intent: {text}
@Controller('{subject}')
export class {Subject}Controller {{
  @Get()
  findAll() {{
    return [];
  }}
}}
"""

ROADMAP_RULES: Tuple[RoadmapRule, ...] = (
    RoadmapRule(
        name="laravel-auth",
        frameworks=frozenset({LARAVEL}),
        keywords=("user", "auth"),
        templates=(
            TaskTemplate(
                "Create/Update User Migration",
                TaskKind.SHELL,
                command="php artisan make:migration create_users_table",
            ),
            TaskTemplate(
                "Update User Model fillables",
                TaskKind.MANUAL,
                target_file="app/Models/User.php",
            ),
            TaskTemplate(
                "Create Auth Controller logic",
                TaskKind.CREATE_FILE,
                target_file="app/Http/Controllers/AuthController.php",
                content=LARAVEL_AUTH_CONTROLLER,
            ),
        ),
    ),
    RoadmapRule(
        name="laravel-order",
        frameworks=frozenset({LARAVEL}),
        keywords=("order",),
        templates=(
            TaskTemplate(
                "Create Order Migration",
                TaskKind.SHELL,
                command="php artisan make:migration create_orders_table",
            ),
            TaskTemplate(
                "Create Order Controller",
                TaskKind.CREATE_FILE,
                target_file="app/Http/Controllers/OrderController.php",
                content=LARAVEL_ORDER_CONTROLLER,
            ),
        ),
    ),
    RoadmapRule(
        name="django-models",
        frameworks=frozenset({DJANGO}),
        keywords=("user", "auth", "model"),
        templates=(
            TaskTemplate("Update Django models", TaskKind.MANUAL, target_file="models.py"),
            TaskTemplate(
                "Create Django Migration",
                TaskKind.SHELL,
                command="python manage.py makemigrations",
            ),
        ),
    ),
    RoadmapRule(
        name="react-page",
        frameworks=frozenset({NEXT, REACT}),
        keywords=("page", "component", "screen", "view"),
        templates=(
            TaskTemplate(
                "Create {Subject} page",
                TaskKind.CREATE_FILE,
                target_file="src/pages/{Subject}Page.jsx",
                content=REACT_PAGE,
            ),
            TaskTemplate(
                "Create {Subject} component",
                TaskKind.CREATE_FILE,
                target_file="src/components/{Subject}.jsx",
                content=REACT_COMPONENT,
            ),
        ),
    ),
    RoadmapRule(
        name="vue-page",
        frameworks=frozenset({VUE}),
        keywords=("page", "component", "screen", "view"),
        templates=(
            TaskTemplate(
                "Create {Subject} page",
                TaskKind.CREATE_FILE,
                target_file="src/views/{Subject}View.vue",
                content=VUE_VIEW,
            ),
            TaskTemplate(
                "Create {Subject} component",
                TaskKind.CREATE_FILE,
                target_file="src/components/{Subject}.vue",
                content=VUE_COMPONENT,
            ),
        ),
    ),
    RoadmapRule(
        name="express-route",
        frameworks=frozenset({EXPRESS}),
        keywords=("api", "route", "endpoint"),
        templates=(
            TaskTemplate(
                "Create {subject} route",
                TaskKind.CREATE_FILE,
                target_file="src/routes/{subject}.js",
                content=EXPRESS_ROUTE,
            ),
        ),
    ),
    RoadmapRule(
        name="nest-controller",
        frameworks=frozenset({NEST}),
        keywords=("api", "route", "endpoint"),
        templates=(
            TaskTemplate(
                "Create {Subject} controller",
                TaskKind.CREATE_FILE,
                target_file="src/{subject}/{subject}.controller.ts",
                content=NEST_CONTROLLER,
            ),
        ),
    ),
)


def extract_subject(text: str, default: str = "feature") -> str:
    """First meaningful word of ``text``, lower-cased.

    ``"add profile page"`` gives ``"profile"``.
    """
    for word in re.findall(r"[a-z0-9]+", (text or "").lower()):
        if word not in _STOPWORDS and not word.isdigit():
            return word
    return default


def _template_values(text: str) -> dict:
    subject = extract_subject(text)
    return {
        "text": " ".join((text or "").split()),
        "subject": subject,
        "Subject": subject[:1].upper() + subject[1:],
    }


def build(
    intent: Intent,
    profile: ProjectProfile,
    rules: Sequence[RoadmapRule] = ROADMAP_RULES,
) -> List[Task]:
    """Build the heuristic roadmap for an intent.

    Deterministic for identical inputs. Never returns an empty list.
    """
    lower = intent.original_text.lower()
    values = _template_values(intent.original_text)

    templates: List[TaskTemplate] = [TaskTemplate(ANALYZE_DESCRIPTION)]
    fired = False
    for rule in rules:
        if rule.matches(lower, profile):
            fired = True
            templates.extend(rule.templates)

    if not fired:
        templates.extend(TaskTemplate(d) for d in FALLBACK_DESCRIPTIONS)

    tasks: List[Task] = []
    seen = set()
    for template in templates:
        task = template.render(f"{HEURISTIC_PREFIX}{len(tasks) + 1}", values)
        key = task.description.lower()
        if key in seen:
            continue
        seen.add(key)
        tasks.append(task)
    return tasks


def tasks_from_advice(advice: str, limit: int = 10) -> List[Task]:
    """Turn numbered lines of advisor output into MANUAL tasks.

    ``"1. Update the **User model**"`` becomes a task described as
    ``"Update the User model"`` with id ``AI-1``.
    """
    tasks: List[Task] = []
    for line in (advice or "").splitlines():
        match = re.match(r"^\s*\d+[.)]\s+(.+?)\s*$", line)
        if not match:
            continue
        description = re.sub(r"[*_`]+", "", match.group(1)).strip()
        if not description:
            continue
        tasks.append(Task(id=f"{ADVISOR_PREFIX}{len(tasks) + 1}", description=description[:120]))
        if len(tasks) >= limit:
            break
    return tasks


def merge_roadmaps(primary: Sequence[Task], extra: Iterable[Task]) -> List[Task]:
    """Append ``extra`` tasks to ``primary``, skipping duplicate descriptions.

    Ids are kept as-is so each task's origin stays visible.
    """
    merged = list(primary)
    seen_descriptions = {t.description.lower() for t in merged}
    seen_ids = {t.id for t in merged}
    for task in extra:
        if task.description.lower() in seen_descriptions or task.id in seen_ids:
            continue
        seen_descriptions.add(task.description.lower())
        seen_ids.add(task.id)
        merged.append(task)
    return merged
