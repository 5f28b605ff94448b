"""Project spec loading.

A spec file is YAML (JSON works too, being a YAML subset)::

    project:
      name: Engine
      description: Rebuild the engine
    milestones:
      - name: M1
    epics:
      - title: Epic A
        description: Build it
        assignee: alice@example.com   # optional; user or issue key
        milestone: M1                 # optional
        stories:
          - title: Story 1
            description: ""

Failures raise ``SpecError`` tagged with the stage that failed:
``read`` (file access), ``parse`` (YAML syntax) or ``schema`` (shape).
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, cast

import yaml

from .errors import SpecError
from .models import EpicSpec, MilestoneSpec, ProjectInfo, ProjectSpec, StorySpec


def _schema_error(message: str) -> SpecError:
    return SpecError('schema', f'Invalid project spec: {message}')


def _mapping(value: Any, where: str) -> dict[str, Any]:
    if not isinstance(value, dict):
        raise _schema_error(f'{where} must be a mapping')
    return cast(dict[str, Any], value)


def _list(value: Any, where: str) -> list[Any]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise _schema_error(f'{where} must be a list')
    return value


def _required_text(data: dict[str, Any], key: str, where: str) -> str:
    value = data.get(key)
    if not isinstance(value, str) or not value.strip():
        raise _schema_error(f'{where}.{key} must be a non-empty string')
    return value


def _description(data: dict[str, Any], where: str) -> str:
    value = data.get('description', '')
    if value is None:
        return ''
    if not isinstance(value, str):
        raise _schema_error(f'{where}.description must be a string')
    return value


def _optional_text(data: dict[str, Any], key: str, where: str) -> str | None:
    value = data.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise _schema_error(f'{where}.{key} must be a string')
    return value


def _story(raw: Any, where: str) -> StorySpec:
    data = _mapping(raw, where)
    return StorySpec(
        title=_required_text(data, 'title', where),
        description=_description(data, where),
        assignee=_optional_text(data, 'assignee', where),
        milestone=_optional_text(data, 'milestone', where),
    )


def _epic(raw: Any, where: str) -> EpicSpec:
    data = _mapping(raw, where)
    stories = [
        _story(item, f'{where}.stories[{i}]')
        for i, item in enumerate(_list(data.get('stories'), f'{where}.stories'))
    ]
    return EpicSpec(
        title=_required_text(data, 'title', where),
        description=_description(data, where),
        assignee=_optional_text(data, 'assignee', where),
        milestone=_optional_text(data, 'milestone', where),
        stories=stories,
    )


def build_project_spec(raw: Any) -> ProjectSpec:
    """Validate an already-decoded document and build a ``ProjectSpec``."""
    data = _mapping(raw, 'spec')
    project = _mapping(data.get('project'), 'project')
    milestones = []
    for i, item in enumerate(_list(data.get('milestones'), 'milestones')):
        milestone = _mapping(item, f'milestones[{i}]')
        milestones.append(MilestoneSpec(name=_required_text(milestone, 'name', f'milestones[{i}]')))
    epics = [_epic(item, f'epics[{i}]') for i, item in enumerate(_list(data.get('epics'), 'epics'))]
    return ProjectSpec(
        project=ProjectInfo(
            name=_required_text(project, 'name', 'project'),
            description=_description(project, 'project'),
        ),
        milestones=milestones,
        epics=epics,
    )


def parse_project_spec(text: str) -> ProjectSpec:
    try:
        raw = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise SpecError('parse', f'Unable to parse project spec: {exc}') from exc
    return build_project_spec(raw)


def load_project_spec(path: str | Path) -> ProjectSpec:
    p = Path(path)
    try:
        text = p.read_text(encoding='utf-8')
    except (OSError, UnicodeDecodeError) as exc:
        raise SpecError('read', f'Unable to read spec file {p}: {exc}') from exc
    return parse_project_spec(text)


__all__ = ['build_project_spec', 'load_project_spec', 'parse_project_spec']
