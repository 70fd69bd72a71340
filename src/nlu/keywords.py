"""
Vocabularies for the deterministic parser.

English phrases observed in salon chats. Longer, more specific phrases
are listed alongside their short forms on purpose: the classifier picks the
longest match, so "cancel my appointment" beats a bare "appointment".
"""

INTENT_KEYWORDS: dict[str, list[str]] = {
    "book": [
        # direct requests
        "book", "booking", "appointment", "schedule", "reserve", "make an appointment",
        # desire
        "i want", "i need", "i'd like", "i would like", "can i get", "could i get",
        "looking for", "looking to", "interested in",
        # informal
        "get a", "do a", "have a", "need a",
        # questions
        "can you book", "could you book", "is it possible to book",
        # future tense
        "going to get", "gonna get", "planning to get",
    ],
    "cancel": [
        "cancel", "delete", "remove", "call off", "cancel my appointment", "cancel booking",
        "cancel my booking", "cancel appointment",
    ],
    "reschedule": [
        "reschedule", "change", "move", "different time", "another time",
        "change my appointment", "move my appointment", "new time", "new date",
        "reschedule my appointment", "reschedule my booking", "reschedule appointment",
    ],
    "view_appointments": [
        "my appointments", "my bookings", "my booking", "show my", "list my", "see my",
        "upcoming", "what appointments", "check my", "view my", "show appointments",
        "view appointments", "do i have any", "when is my", "booked for",
    ],
    "services": [
        "services", "prices", "menu", "offer", "treatments", "what do you", "how much",
        "what services", "price list",
    ],
    "hours": [
        "hours", "open", "close", "when are you", "location", "address", "where are you",
        "opening hours", "business hours",
    ],
    "help": ["help", "commands", "what can you", "how do i", "options", "what can i do"],
    "greeting": [
        "hi", "hello", "hey", "good morning", "good afternoon", "good evening", "start",
    ],
    "confirmation": [
        "yes", "yeah", "yep", "sure", "ok", "okay", "confirm", "correct", "right",
        "book it", "sounds good", "perfect", "go ahead", "do it", "let's do it",
    ],
}

NEGATION_PHRASES: list[str] = [
    "don't want", "do not want", "not interested", "no thanks", "never mind", "nevermind",
    "cancel that", "forget it", "not anymore", "changed my mind", "actually no", "nah",
    "don't need", "do not need",
]

# Default phrases per category slug; a category's own keywords are added on top.
CATEGORY_KEYWORDS: dict[str, list[str]] = {
    "haircut": [
        "haircut", "cut", "trim", "hair cut", "snip", "men's cut", "mens cut", "women's cut",
        "womens cut", "bang trim", "fringe trim", "shave", "buzz cut", "layer", "layers",
    ],
    "hair-colouring": [
        "color", "colour", "dye", "highlight", "highlights", "balayage", "colouring", "coloring",
        "tint", "bleach", "ombre", "root touch up", "grey coverage", "gray coverage",
        "fashion color", "fantasy color",
    ],
    "keratin-treatment": [
        "keratin", "keratin treatment", "smoothing", "rebonding", "straightening",
        "brazilian blowout", "frizz", "anti-frizz", "k-gloss", "tiboli", "hair treatment",
    ],
    "perm": [
        "perm", "curl", "wave", "curly", "digital perm", "cold perm", "volume perm",
        "root perm", "iron perm", "wavy",
    ],
    "scalp-therapy": [
        "scalp", "dandruff", "hair loss", "scalp treatment", "oily scalp", "dry scalp",
        "itchy scalp", "flaky", "scalp therapy", "thinning",
    ],
}

ANY_STYLIST_PHRASES: list[str] = [
    "any stylist", "no preference", "doesn't matter", "anyone", "anybody", "whoever", "any",
]

BACK_PHRASES: list[str] = ["back", "go back", "undo", "previous", "previous step"]

WEEKDAYS = ["monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday"]

MONTHS = [
    "january", "february", "march", "april", "may", "june",
    "july", "august", "september", "october", "november", "december",
]

TIME_PERIODS: dict[str, tuple[str, str]] = {
    "morning": ("09:00", "12:00"),
    "afternoon": ("12:00", "17:00"),
    "evening": ("17:00", "20:00"),
}

ORDINALS: dict[str, int] = {
    "first": 1, "1st": 1,
    "second": 2, "2nd": 2,
    "third": 3, "3rd": 3,
    "fourth": 4, "4th": 4,
    "fifth": 5, "5th": 5,
}
