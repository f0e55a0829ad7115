"""
Heuristics for sources that do not report canonical token counts.

Every UsageData built here carries estimated=True so reports can tell
approximated numbers apart from counts the tool reported itself.
"""

from usagetally.models import UsageData

# combined counts are split with a fixed input share
INPUT_SHARE = 0.6

# roughly four characters per token for English text and code
CHARS_PER_TOKEN = 4


def estimate_tokens_from_chars(chars: "int") -> "int":
    return max(chars, 0) // CHARS_PER_TOKEN


def split_estimate(total_tokens: "int") -> "UsageData":
    """
    splits a combined token count 60/40 into input/output and flags
    the result as estimated.
    """
    input_tokens = int(total_tokens * INPUT_SHARE)
    return UsageData(
        input_tokens=input_tokens,
        output_tokens=total_tokens - input_tokens,
        request_count=1,
        estimated=True,
    )
