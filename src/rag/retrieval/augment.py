"""
Prompt augmentation - join retrieved context with the user's question.
"""

from typing import Dict, List


DEFAULT_SYSTEM_PROMPT = (
    "You are a helpful assistant. Use the provided context to answer questions "
    "accurately. If the context doesn't contain relevant information, say so."
)


def build_augmented_prompt(context: str, query: str) -> str:
    """
    Build the user turn sent to the chat model.

    An empty context means no augmentation is available and the query is
    sent unchanged.
    """
    if not context:
        return query
    return f"{context}\n\nUser question: {query}"


def build_chat_messages(
    context: str,
    query: str,
    system_prompt: str = DEFAULT_SYSTEM_PROMPT,
) -> List[Dict[str, str]]:
    """Build a system + user message list for a one-shot chat call."""
    return [
        {"role": "system", "content": system_prompt},
        {"role": "user", "content": build_augmented_prompt(context, query)},
    ]
