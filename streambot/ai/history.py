from __future__ import annotations

from typing import Iterable

from streambot.ai.schema import ChatTurn

HISTORY_LIMIT = 20

_ASSISTANT_SPEAKERS = {"bot", "agent"}


def speaker_role(speaker: str) -> str:
    return "model" if speaker in _ASSISTANT_SPEAKERS else "user"


def normalize_history(messages: Iterable, current_text: str, limit: int = HISTORY_LIMIT) -> list[ChatTurn]:
    """Monta os turnos enviados ao modelo.

    - usa só as ``limit`` mensagens mais recentes;
    - bot/agent viram ``model``, o resto ``user``;
    - a mensagem atual entra sempre como último turno ``user``;
    - turnos ``model`` no início são descartados (o primeiro turno tem que ser do usuário);
    - turnos consecutivos do mesmo papel são fundidos com ``\\n``.

    >>> [t.role for t in normalize_history([], "hola")]
    ['user']
    """
    recent = list(messages)[-limit:] if limit > 0 else []
    turns = [(speaker_role(message.speaker), message.text) for message in recent]
    turns.append(("user", current_text))

    start = 0
    while start < len(turns) and turns[start][0] != "user":
        start += 1

    merged: list[ChatTurn] = []
    for role, text in turns[start:]:
        if merged and merged[-1].role == role:
            merged[-1].text += "\n" + text
        else:
            merged.append(ChatTurn(role=role, text=text))
    return merged
