"""
Text processing utilities for the completion layer.

Bodies are truncated before being placed in a prompt so that a single long
thread cannot blow the model's context window.
"""

import re


def truncate_at_sentence_boundary(text: str, max_chars: int) -> str:
    """
    Truncate text at the nearest sentence boundary before max_chars.
    
    Recognizes ASCII (. ! ?) and full-width Japanese (。！？) sentence
    terminators; ASCII ones must be followed by whitespace or end of text.
    
    Args:
        text: Text to truncate
        max_chars: Maximum character count
        
    Returns:
        Truncated text ending at a sentence boundary, or hard-truncated if
        no sentence boundary found within the limit.
        
    Examples:
        >>> truncate_at_sentence_boundary("Hello. World. Test.", 15)
        'Hello. World.'
        >>> truncate_at_sentence_boundary("返信がありません。至急対応してください。", 12)
        '返信がありません。'
    """
    if max_chars <= 0:
        return ""
    if len(text) <= max_chars:
        return text
    
    truncated_segment = text[:max_chars]
    
    sentence_end_pattern = r'[.!?](?:\s|$)|[。！？]'
    matches = list(re.finditer(sentence_end_pattern, truncated_segment))
    
    if matches:
        cutoff = matches[-1].end()
        # Drop the trailing whitespace the pattern consumed
        if truncated_segment[cutoff - 1:cutoff].isspace():
            cutoff -= 1
        return text[:cutoff]
    
    # No sentence boundary: avoid cutting a word in half when possible
    last_space = truncated_segment.rfind(' ')
    if last_space > max_chars * 0.8:
        return text[:last_space]
    
    return text[:max_chars]
