# Role: Rule-based intent classification for one user message given the current ConversationState.
# Rules are an ordered table; the first rule that fires wins. Step-specific rules sit before the generic
# cascade so a broad question/confirm heuristic can never starve selection logic at a given step.

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Callable, FrozenSet, List, Optional, Sequence

import renewal.config as config
from renewal.models.intent import ClassifiedIntent, Intent
from renewal.models.state import ConversationState, FlowStep
from renewal.tools.insurance_catalog import INSURER_VARIANTS, find_quote_by_name
from renewal.utils.extractors import extract_address, extract_email, extract_phone, extract_vehicle_info
from renewal.utils.fuzzy import find_fuzzy_keys, tokenize

# --- shared vocab ---------------------------------------------------------------------------------

_AFFIRMATION = re.compile(r"^(ok|okay|yes|ya|sure|alright|proceed|continue)$")
_PLAYFUL = re.compile(r"you choose|you pick|up to you|whatever|whichever|surprise me|\bidk\b|dunno|not sure|hmm+|haha|\blol\b")

# Pending insurer switch: yes/no only. "continue" is not a cancellation; it falls through and the
# one-turn scoping clears the pending action.
_PENDING_YES = re.compile(r"^(yes|ya|yep|ok|okay|confirm|sure|proceed|do it|change it|yes please|go ahead)[.!]*$")
_PENDING_NO = re.compile(r"^(no|nope|nah|cancel|don'?t|do not|never ?mind|keep current|keep it|stay)[.!]*$")

_CHANGE_VERB = re.compile(r"\b(change|switch|go with|choose|pick|select)\b")
_PAST_QUOTES = frozenset(
    {FlowStep.ADDONS, FlowStep.ROADTAX, FlowStep.PERSONAL_DETAILS, FlowStep.OTP, FlowStep.PAYMENT}
)

_OTP = re.compile(r"^\d{4}$")

_PAYMENT_METHOD = (
    ("card", re.compile(r"\b(card|credit|debit|visa|mastercard)\b")),
    ("fpx", re.compile(r"\b(fpx|online banking|bank transfer)\b")),
    ("ewallet", re.compile(r"wallet|touch ?n ?go|\btng\b|grabpay|\bboost\b")),
    ("bnpl", re.compile(r"instal+ment|atome|pay ?later|\bbnpl\b")),
)
_PAYMENT_GO = re.compile(r"^(yes|ya|ok|okay|sure|proceed|continue|yes please|let'?s go|ready|pay now|confirm)[.!]*$")

# Quote step
_DILEMMA = re.compile(
    r"can'?t (choose|decide|pick|select)|cannot (choose|decide|pick|select)|torn between|stuck between|"
    r"not sure which|help me (choose|decide|pick)|which (one|should)|which is better|what(?:'s| is) better|"
    r"better one|best one|between .+ and"
)
_QUOTE_QUESTION = re.compile(
    r"\?|tell me|what about|how about|about\s+(takaful|ikhlas|etiqa|allianz)|do i need|should i|explain|"
    r"interested|want to know|more about|details"
)
_QUOTE_DISCUSSION = re.compile(r"\b(which|what|why|compare|difference|better|best|recommend)\b")
_SELECTION_VERB = re.compile(r"\b(go with|choose|select|pick|i'll take|i will take|confirm)\b")
_CANT = re.compile(r"can'?t|cannot|couldn'?t")
_SOFT_SELECTION = re.compile(r"\b(ok|okay|maybe)\b")
_INQUIRY_CUE = re.compile(r"\b(about|tell|explain|compare|difference|why|what|which|how|vs|recommend|info|details)\b")
_NEGATION_CUE = re.compile(r"\b(no|not|don'?t|dont|can'?t|cannot|couldn'?t)\b")
_BARE_FILLERS = frozenset({"please", "pls", "plz", "lah", "la", "insurance", "one"})

# Add-on step
_NO_ADD_ONS = re.compile(r"no add.?ons?|no extras?|without add.?ons?")
_SKIP_ADD_ONS = re.compile(r"\bnone\b|\bskip\b|no thanks|don'?t need|dont need|proceed without|^no$|^nope$|^nah$")
_ADD_ON_KEYWORDS = (
    ("windscreen", re.compile(r"windscreen|windshield|\bglass\b")),
    ("flood", re.compile(r"flood|disaster|perils")),
    ("ehailing", re.compile(r"e.?hailing|\bgrab\b|ride.?shar")),
)
_BOTH = re.compile(r"\bboth\b")
_ALL = re.compile(r"\ball\b")
_ALL_IDIOM = re.compile(r"\ball (good|set|right|done|fine|ok|okay)\b")
_ADD_ON_QUESTION = re.compile(
    r"\?|what is|what's|do i need|should i|tell me|explain|which one|recommend|need this|worth it|necessary|"
    r"how does|what does"
)
_ADD_ON_INDECISION = re.compile(r"can'?t (choose|decide)|not sure|help me (choose|decide)|which (one|should)")
_ADD_ON_SELECT = re.compile(r"\b(add|want|yes|ok|okay|take|get|include|i'll take|i will take|give me|with)\b")
_ADD_ON_NEGATED = re.compile(r"\b(don'?t|do not|dont|no)\s+(want|need|add|take|include)\b")
_ADD_ON_DIRECT = re.compile(
    r"^(?:windscreen|windshield|flood|special perils|perils|e.?hailing|both|all)"
    r"(?:\s*(?:and|,|\+|&)\s*(?:windscreen|windshield|flood|special perils|perils|e.?hailing))*"
    r"(?:\s+(?:please|pls))?[.!]*$"
)
_BARE_OK = re.compile(r"^(ok|okay|yes|ya|sure|alright)$")

# Road tax step
_DELIVER = r"(?:deliver\w*|physical|printed|print|sticker)"
_DIGITAL = r"(?:digital|e-?road ?tax|myjpj|online)"
_SIX = r"(?:(?<!\d)6(?!\d)|\bsix\b)"
_TWELVE = r"(?:(?<!\d)12(?!\d)|\btwelve\b|\b(?:1|one)\s*(?:year|yr)\b|\byear\b|\bannual\w*|\byearly\b)"
_ROAD_TAX_COMBINED = (
    ("6month-digital", re.compile(rf"{_SIX}.*{_DIGITAL}|{_DIGITAL}.*{_SIX}")),
    ("12month-digital", re.compile(rf"{_TWELVE}.*{_DIGITAL}|{_DIGITAL}.*{_TWELVE}")),
    ("6month-deliver", re.compile(rf"{_SIX}.*{_DELIVER}|{_DELIVER}.*{_SIX}")),
    ("12month-deliver", re.compile(rf"{_TWELVE}.*{_DELIVER}|{_DELIVER}.*{_TWELVE}")),
)
_ROAD_TAX_TWELVE = re.compile(rf"{_TWELVE}")
_ROAD_TAX_SIX = re.compile(rf"{_SIX}")
_NO_ROAD_TAX = re.compile(
    r"no road ?tax|without road ?tax|don'?t need road ?tax|just insurance|insurance only|\bskip\b|^no$|^none$|^nope$"
)

# Generic cascade
_QUESTION = re.compile(
    r"\?|do i need|should i|what is|what's|how does|how do|how much|explain|tell me about|\bwhy\b|which one|"
    r"recommend|need this|need these|worth it|necessary"
)
_CONFIRM_EXACT = re.compile(
    r"^(yes|correct|confirm|ok|okay|ya|betul|proceed|looks good|that's right|continue|all good|all is good|good|"
    r"yep|yup|right|thats? correct)[.!]*$"
)
_CONFIRM_WORD = re.compile(r"\b(yes|correct|confirm|proceed|looks good|all good|all is good)\b")
_START_RENEWAL = re.compile(r"renew|insurance|\bstart\b|\bbegin\b|get (?:a )?quote")
_PLAYFUL_FALLBACK = re.compile(
    r"^(haha|lol|lmao|hehe|hmm+|umm+|uhh+|idk|dunno|whatever|anything|up to you|you choose|you pick|as you say|"
    r"as you think|whichever)\b|\b(haha|lol|idk|dunno|whatever|up to you|you choose|you pick|whichever)\b"
)
_DETAILS_SUPPRESSED = frozenset({FlowStep.PERSONAL_DETAILS, FlowStep.OTP, FlowStep.PAYMENT, FlowStep.SUCCESS})


@dataclass(frozen=True)
class _Turn:
    raw: str
    msg: str
    state: ConversationState
    words: Sequence[str] = field(default_factory=tuple)


@dataclass(frozen=True)
class _Rule:
    name: str
    apply: Callable[[_Turn], Optional[ClassifiedIntent]]
    steps: Optional[FrozenSet[FlowStep]] = None


def _result(intent: Intent, confidence: float, **data) -> ClassifiedIntent:
    return ClassifiedIntent(intent=intent, confidence=confidence, data=data)


def _insurer_key_for(state: ConversationState) -> Optional[str]:
    quote = state.selected_quote
    if quote is None:
        return None
    if quote.insurer_key:
        return quote.insurer_key
    match = find_quote_by_name(quote.insurer)
    return match.insurer.key if match else None


def _mentioned_add_ons(msg: str) -> List[str]:
    found = [key for key, pattern in _ADD_ON_KEYWORDS if pattern.search(msg)]
    if _ALL.search(msg) and not _ALL_IDIOM.search(msg):
        return ["windscreen", "flood", "ehailing"]
    if _BOTH.search(msg) and not found:
        return ["windscreen", "flood"]
    return found


# --- rules: highest priority first ------------------------------------------------------------------


def _pending_confirmation(turn: _Turn) -> Optional[ClassifiedIntent]:
    pending = turn.state.pending_action
    if pending is None or pending.type != "confirm_quote_change":
        return None
    if _PENDING_YES.match(turn.msg):
        return _result(Intent.CONFIRM_CHANGE_QUOTE, 0.95, new_insurer=pending.new_insurer)
    if _PENDING_NO.match(turn.msg):
        return _result(Intent.OTHER, 0.9, cancel_pending_action=True)
    return None


def _change_insurer(turn: _Turn) -> Optional[ClassifiedIntent]:
    if turn.state.selected_quote is None or not _CHANGE_VERB.search(turn.msg):
        return None
    current = _insurer_key_for(turn.state)
    targets = [k for k in find_fuzzy_keys(turn.msg, INSURER_VARIANTS) if k != current]
    # Two candidate targets is ambiguous; never guess a destructive switch.
    if current is None or len(targets) != 1:
        return None
    return _result(Intent.CHANGE_QUOTE, 0.95, new_insurer=targets[0], current_insurer=current)


def _otp(turn: _Turn) -> Optional[ClassifiedIntent]:
    if _OTP.match(turn.msg):
        return _result(Intent.VERIFY_OTP, 1.0, otp=turn.msg, valid=True)
    return None


def _payment(turn: _Turn) -> Optional[ClassifiedIntent]:
    for method, pattern in _PAYMENT_METHOD:
        if pattern.search(turn.msg):
            return _result(Intent.SELECT_PAYMENT, 0.9, method=method)
    if _PAYMENT_GO.match(turn.msg):
        return _result(Intent.SELECT_PAYMENT, 0.85, method="any")
    return None


def _quotes_affirmation(turn: _Turn) -> Optional[ClassifiedIntent]:
    return _result(Intent.CONFIRM, 0.7) if _AFFIRMATION.match(turn.msg) else None


def _quotes_dilemma(turn: _Turn) -> Optional[ClassifiedIntent]:
    return _result(Intent.ASK_QUESTION, 0.95, dilemma=True) if _DILEMMA.search(turn.msg) else None


def _quotes_playful(turn: _Turn) -> Optional[ClassifiedIntent]:
    return _result(Intent.UNCLEAR_OR_PLAYFUL, 0.88) if _PLAYFUL.search(turn.msg) else None


def _quotes_question(turn: _Turn) -> Optional[ClassifiedIntent]:
    if _QUOTE_QUESTION.search(turn.msg) or _QUOTE_DISCUSSION.search(turn.msg):
        return _result(Intent.ASK_QUESTION, 0.9)
    return None


def _quotes_selection(turn: _Turn) -> Optional[ClassifiedIntent]:
    msg = turn.msg
    # 1) Bare mention: 1-2 meaningful words, no inquiry or negation cue, exactly one insurer
    if not _INQUIRY_CUE.search(msg) and not _NEGATION_CUE.search(msg):
        candidates = [w for w in turn.words if w not in _BARE_FILLERS]
        if 1 <= len(candidates) <= 2:
            keys = find_fuzzy_keys(" ".join(candidates), INSURER_VARIANTS)
            if len(keys) == 1:
                return _result(Intent.SELECT_QUOTE, 0.9, insurer=keys[0])

    # 2) Explicit verb ("go with", "pick", ...) or soft "ok/maybe + insurer"
    has_verb = bool(_SELECTION_VERB.search(msg)) and not _CANT.search(msg)
    keys = find_fuzzy_keys(msg, INSURER_VARIANTS)
    has_soft = bool(_SOFT_SELECTION.search(msg)) and bool(keys)
    if (has_verb or has_soft) and keys:
        return _result(Intent.SELECT_QUOTE, 0.9, insurer=keys[0])
    return None


def _add_ons(turn: _Turn) -> Optional[ClassifiedIntent]:
    msg = turn.msg
    mentioned = _mentioned_add_ons(msg)

    # 1) Explicit "no add-ons" / skip, unless the message is really naming add-ons
    if _NO_ADD_ONS.search(msg) or (_SKIP_ADD_ONS.search(msg) and not mentioned):
        return _result(Intent.SELECT_ADDON, 0.9, add_ons=[], confirmed=True)

    # 2) Questions and indecision never confirm anything
    if _ADD_ON_QUESTION.search(msg) or _ADD_ON_INDECISION.search(msg):
        return _result(Intent.ASK_QUESTION, 0.9)

    if mentioned:
        if _ADD_ON_NEGATED.search(msg):
            return _result(Intent.ASK_QUESTION, 0.7)
        # 3) Mentioned + selection verb, or a direct "windscreen and flood" shape
        if _ADD_ON_SELECT.search(msg) or _ADD_ON_DIRECT.match(msg):
            return _result(Intent.SELECT_ADDON, 0.9, add_ons=mentioned, confirmed=True)
        # 4) Mentioned without clear intent: keep them pre-selected and ask
        return _result(Intent.ASK_QUESTION, 0.7, add_ons=mentioned, confirmed=False)

    if _BARE_OK.match(msg):
        return _result(Intent.OTHER, 0.5)
    if _PLAYFUL.search(msg):
        return _result(Intent.UNCLEAR_OR_PLAYFUL, 0.82)
    return None


def _road_tax(turn: _Turn) -> Optional[ClassifiedIntent]:
    msg = turn.msg
    if _AFFIRMATION.match(msg):
        return _result(Intent.OTHER, 0.5)

    for option, pattern in _ROAD_TAX_COMBINED:
        if pattern.search(msg):
            return _result(Intent.SELECT_ROADTAX, 0.9, option=option)

    # "no road tax this year" must not read as a 12-month pick.
    if _NO_ROAD_TAX.search(msg):
        return _result(Intent.SELECT_ROADTAX, 0.9, option="none")

    # Duration without a channel defaults to digital.
    if _ROAD_TAX_TWELVE.search(msg):
        return _result(Intent.SELECT_ROADTAX, 0.85, option="12month-digital")
    if _ROAD_TAX_SIX.search(msg):
        return _result(Intent.SELECT_ROADTAX, 0.85, option="6month-digital")

    if _PLAYFUL.search(msg):
        return _result(Intent.UNCLEAR_OR_PLAYFUL, 0.82)
    return None


def _generic_question(turn: _Turn) -> Optional[ClassifiedIntent]:
    return _result(Intent.ASK_QUESTION, 0.9) if _QUESTION.search(turn.msg) else None


def _generic_confirm(turn: _Turn) -> Optional[ClassifiedIntent]:
    if _CONFIRM_EXACT.match(turn.msg) or _CONFIRM_WORD.search(turn.msg):
        return _result(Intent.CONFIRM, 0.7)
    return None


def _start_renewal(turn: _Turn) -> Optional[ClassifiedIntent]:
    return _result(Intent.START_RENEWAL, 0.8) if _START_RENEWAL.search(turn.msg) else None


def _playful_fallback(turn: _Turn) -> Optional[ClassifiedIntent]:
    return _result(Intent.UNCLEAR_OR_PLAYFUL, 0.75) if _PLAYFUL_FALLBACK.search(turn.msg) else None


def _personal_details(turn: _Turn) -> Optional[ClassifiedIntent]:
    # Email is the strongest signal and counts at any step.
    if extract_email(turn.raw):
        return _result(Intent.SUBMIT_DETAILS, 0.95)
    if turn.state.step != FlowStep.PERSONAL_DETAILS:
        return None
    has_phone = bool(extract_phone(turn.raw))
    has_address = bool(extract_address(turn.raw))
    if has_phone and has_address:
        return _result(Intent.SUBMIT_DETAILS, 0.85)
    if has_phone or has_address:
        return _result(Intent.SUBMIT_DETAILS, 0.8)
    return None


def _provide_info(turn: _Turn) -> Optional[ClassifiedIntent]:
    # Addresses and phone numbers are full of plate/ID-shaped tokens; stop extracting once details start.
    if turn.state.step in _DETAILS_SUPPRESSED:
        return None
    found = extract_vehicle_info(turn.raw)
    has_plate = bool(found["plate_number"])
    has_owner_id = bool(found["owner_id"])
    if has_plate or has_owner_id:
        return _result(Intent.PROVIDE_INFO, 0.9, has_plate=has_plate, has_owner_id=has_owner_id)
    return None


DEFAULT_RULES: Sequence[_Rule] = (
    _Rule("pending_confirmation", _pending_confirmation),
    _Rule("change_insurer", _change_insurer, _PAST_QUOTES),
    _Rule("otp", _otp, frozenset({FlowStep.OTP})),
    _Rule("payment", _payment, frozenset({FlowStep.PAYMENT})),
    _Rule("quotes_affirmation", _quotes_affirmation, frozenset({FlowStep.QUOTES})),
    _Rule("quotes_dilemma", _quotes_dilemma, frozenset({FlowStep.QUOTES})),
    _Rule("quotes_playful", _quotes_playful, frozenset({FlowStep.QUOTES})),
    _Rule("quotes_question", _quotes_question, frozenset({FlowStep.QUOTES})),
    _Rule("quotes_selection", _quotes_selection, frozenset({FlowStep.QUOTES})),
    _Rule("add_ons", _add_ons, frozenset({FlowStep.ADDONS})),
    _Rule("road_tax", _road_tax, frozenset({FlowStep.ROADTAX})),
    _Rule("generic_question", _generic_question),
    _Rule("generic_confirm", _generic_confirm),
    _Rule("start_renewal", _start_renewal, frozenset({FlowStep.START})),
    _Rule("playful_fallback", _playful_fallback),
    _Rule("personal_details", _personal_details),
    _Rule("provide_info", _provide_info),
)


class IntentClassifier:
    """
    Deterministic, step-aware intent classification.

    Contract:
    - classify(message, state) is a pure function of its inputs and never raises on string input.
    - Ordering is load-bearing: dilemmas before selections, questions before bare-word selections.
    - Anything no rule claims becomes OTHER at 0.5 (a safe no-op for the state machine).
    """

    def __init__(self, rules: Optional[Sequence[_Rule]] = None) -> None:
        self.rules = tuple(rules or DEFAULT_RULES)

    def classify(self, message: str, state: ConversationState) -> ClassifiedIntent:
        raw = message if isinstance(message, str) else ""
        msg = raw.strip().lower()
        turn = _Turn(raw=raw, msg=msg, state=state, words=tuple(tokenize(msg)))

        for rule in self.rules:
            if rule.steps is not None and state.step not in rule.steps:
                continue
            result = rule.apply(turn)
            if result is not None:
                if config.DEBUG:
                    print(
                        f"[INTENT] step={state.step.value} rule={rule.name} "
                        f"intent={result.intent.value} conf={result.confidence:.2f}"
                    )
                return result

        if config.DEBUG:
            print(f"[INTENT] step={state.step.value} rule=default intent=other")
        return _result(Intent.OTHER, 0.5)
