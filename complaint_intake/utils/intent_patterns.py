"""
Intent phrase tables for reply classification

Phrases are stored lowercase without apostrophes; replies are normalized
the same way before matching ("don't know" and "dont know" both match).
"""

# Replies that decline or cannot answer the question
SKIP_PHRASES = [
    "dont know",
    "do not know",
    "i dont know",
    "no idea",
    "not sure",
    "im not sure",
    "unsure",
    "cant remember",
    "cannot remember",
    "dont remember",
    "do not remember",
    "cant recall",
    "dont recall",
    "dunno",
    "idk",
    "n/a",
    "na",
    "not applicable",
    "skip",
    "skip it",
    "skip this",
    "pass",
    "prefer not to say",
    "rather not say",
    "id rather not say",
    "no comment",
    "forgot",
    "forget",
]

# Skip phrases that only count when they are the whole reply
SKIP_FULL_MATCH_ONLY = {"na", "pass", "forget", "forgot"}

# Replies asking what the question means
CLARIFY_PHRASES = [
    "what do you mean",
    "what does that mean",
    "what is that",
    "whats that",
    "can you explain",
    "could you explain",
    "please explain",
    "explain that",
    "i dont understand",
    "dont understand",
    "i do not understand",
    "not sure what you mean",
    "dont know what you mean",
    "what are you asking",
    "can you rephrase",
    "could you rephrase",
    "say that again",
    "come again",
    "huh",
    "pardon",
    "sorry what",
    "what",
]

CLARIFY_FULL_MATCH_ONLY = {"huh", "pardon", "what", "sorry what", "come again"}

AFFIRMATIVE_PHRASES = [
    "yes",
    "yeah",
    "yea",
    "yep",
    "yup",
    "y",
    "sure",
    "ok",
    "okay",
    "correct",
    "thats correct",
    "thats right",
    "right",
    "exactly",
    "of course",
    "definitely",
    "absolutely",
    "please do",
    "yes please",
    "i do",
    "i am",
]

NEGATIVE_PHRASES = [
    "no",
    "nope",
    "nah",
    "n",
    "not really",
    "no thanks",
    "no thank you",
    "thats wrong",
    "thats not right",
    "incorrect",
    "wrong",
    "not correct",
    "i dont",
    "im not",
    "i am not",
    "dont contact me",
    "do not contact me",
]

# Replies up to this many words may carry a skip phrase inside a longer sentence
SHORT_REPLY_WORDS = 6

# Yes/no replies up to this many words may start with a yes/no phrase ("yes, please call")
YES_NO_LEADING_WORDS = 5
