"""
Localized bot replies.

Canned texts for guardrail deflections, order status narration and the
fallback replies used when the oracle is silent. English, Hindi and Nepali
are covered; anything else falls back to English.
"""

from typing import Optional, Sequence

from tabletalk.models import OrderStatus
from tabletalk.services.chat.guardrail import GuardrailVerdict, Locale

THINKING_FALLBACK = "I'm having trouble thinking right now. Please try again! 🔄"

GUARDRAIL_REPLIES = {
    GuardrailVerdict.PROMPT_INJECTION: {
        Locale.EN: "I can only help with ordering: menu, quantity, order status, payment, and table flow. 🍽️",
        Locale.HI: "मैं सिर्फ ऑर्डर से जुड़ी मदद कर सकता हूं: मेन्यू, मात्रा, ऑर्डर स्टेटस और पेमेंट। 🍽️",
        Locale.NE: "म केवल अर्डर सम्बन्धी सहयोग गर्न सक्छु। मेनु, परिमाण, अर्डर स्थिति, र भुक्तानीमा मद्दत गर्छु। 🍽️",
    },
    GuardrailVerdict.ABUSIVE: {
        Locale.EN: "I'm here to help, let's keep it respectful. Want help with your order? 🙏",
        Locale.HI: "मैं मदद के लिए यहां हूं, कृपया सम्मानजनक भाषा रखें। क्या मैं ऑर्डर में मदद करूं? 🙏",
        Locale.NE: "म मद्दत गर्न तयार छु, तर सभ्य भाषामा कुरा गरौं। के अर्डरमा मद्दत चाहिन्छ? 🙏",
    },
    GuardrailVerdict.UNPARSEABLE: {
        Locale.EN: "I didn't get that. Please share item name, quantity, table, or ask order status clearly.",
        Locale.HI: "मैं समझ नहीं पाया। कृपया आइटम का नाम, मात्रा, टेबल या ऑर्डर स्टेटस साफ लिखें।",
        Locale.NE: "म बुझिनँ। कृपया मेनु आइटम, संख्या, टेबल, वा अर्डर स्थिति स्पष्ट रूपमा लेख्नुहोस्।",
    },
}

STATUS_PHRASES = {
    OrderStatus.CONFIRMED: "locked in and sent to kitchen",
    OrderStatus.PREPARING: "being prepared right now",
    OrderStatus.READY: "ready to serve",
    OrderStatus.OUT_FOR_DELIVERY: "on the way to your table",
    OrderStatus.PAID: "paid and completed",
    OrderStatus.CANCELLED: "cancelled",
}

SESSION_CLOSED = {
    Locale.EN: "This chat is closed because its order was settled. Scan the table QR again to start a new order. 🙏",
    Locale.HI: "यह चैट बंद हो चुकी है क्योंकि ऑर्डर पूरा हो गया। नया ऑर्डर शुरू करने के लिए टेबल QR फिर से स्कैन करें। 🙏",
    Locale.NE: "यो च्याट बन्द भइसक्यो किनकि अर्डर पूरा भयो। नयाँ अर्डरका लागि टेबल QR फेरि स्क्यान गर्नुहोस्। 🙏",
}


def guardrail_reply(verdict: GuardrailVerdict, locale: Locale) -> str:
    replies = GUARDRAIL_REPLIES[verdict]
    return replies.get(locale, replies[Locale.EN])


def session_closed_reply(locale: Locale) -> str:
    return SESSION_CLOSED.get(locale, SESSION_CLOSED[Locale.EN])


def status_narration(order_number: Optional[str], status: Optional[OrderStatus], locale: Locale) -> str:
    """Short, upbeat status update for the guest's linked order."""
    if not order_number or status is None:
        if locale == Locale.NE:
            return "अहिलेसम्म सक्रिय अर्डर भेटिएन। नयाँ अर्डर सुरु गरौं? 😊"
        if locale == Locale.HI:
            return "अभी कोई सक्रिय ऑर्डर नहीं मिला। नया ऑर्डर शुरू करें? 😊"
        return "I can't find an active order yet. Want to start a fresh one? 😊"

    state = STATUS_PHRASES.get(status, status.value)
    if locale == Locale.NE:
        return f"तपाईंको {order_number} {state} छ। म तपाईंलाई अपडेट गर्दैछु। 😄"
    if locale == Locale.HI:
        return f"आपका {order_number} अभी {state} है। मैं आपको अपडेट देता रहूंगा। 😄"
    return f"Your {order_number} is {state}. World-class server mode: always on your side. 😄"


def idle_reply(locale: Locale, featured: Sequence[str], categories: Sequence[str], menu_wizard: bool) -> str:
    """Reply when neither the oracle nor the fallback parser found anything to do."""
    if menu_wizard:
        hint = ", ".join(categories[:4]) or "today's specials"
        if locale == Locale.NE:
            return f"मेनु खोलेँ। {hint} हेर्नुहोस् र चाहिएको आइटम छान्नुहोस्। 😄"
        if locale == Locale.HI:
            return f"मैंने मेन्यू खोल दिया। {hint} देखकर आइटम चुनें। 😄"
        return f"I opened the menu wizard for you. Browse {hint} and pick your items. 😄"

    suggestion = ", ".join(featured[:6]) or "today's specials"
    if locale == Locale.NE:
        return f'म यहाँ छु। अर्डर छिटो गरौं? उदाहरण: "{suggestion}" मध्ये चाहिएको आइटम र संख्या लेख्नुहोस्। 😄'
    if locale == Locale.HI:
        return f'मैं यहीं हूं। जल्दी ऑर्डर करते हैं? उदाहरण: "{suggestion}" में से आइटम और मात्रा लिखें। 😄'
    return f"I'm here for you. Let's order fast: pick items like {suggestion} and tell me quantity. 😄"


def order_placed_reply(order_number: str) -> str:
    return f"Your order {order_number} is placed successfully. 🎉"


def cart_updated_reply() -> str:
    return "Added to your cart. Tell me when you want to place the order. 🛒"


def order_closed_reply(order_number: str, status: OrderStatus) -> str:
    if status == OrderStatus.PAID:
        return f"Payment confirmed for {order_number}. Session closed. ✅"
    return f"Order {order_number} cancelled. Session closed. ❌"


def no_open_order_reply(table_label: Optional[str]) -> str:
    if table_label:
        return f"No active order found for {table_label}. Please check the table and try again."
    return "No active order found to update."


# =============================================================================
# DASHBOARD PUSH NARRATION
# =============================================================================

def payment_link(order_number: str, total: float) -> str:
    return f"tabletalk://pay?order={order_number}&amount={total:.2f}"


def lifecycle_narration(order_number: str, status: OrderStatus, total: float) -> str:
    """Text pushed into a linked chat when staff move the order along."""
    link = payment_link(order_number, total)
    texts = {
        OrderStatus.CONFIRMED: f"Order {order_number} is locked in. I'm your favorite server and I've got this. 🍽️",
        OrderStatus.PREPARING: f"Chef is cooking {order_number} right now. Smells amazing already. 🔥",
        OrderStatus.READY: f"Great news! {order_number} is ready. Wanna pay now? Scan this payment QR: {link} ✅",
        OrderStatus.OUT_FOR_DELIVERY: (
            f"Your {order_number} is on the way to your table. Want to complete payment? QR: {link} 🚀"
        ),
        OrderStatus.PAID: f"Payment confirmed for {order_number}. You're a legend. Session closed with a smile. ✅",
        OrderStatus.CANCELLED: (
            f"Order {order_number} cancelled. No worries, I'm still here for your next craving. ❌"
        ),
    }
    return texts.get(status, f"Order {order_number} status: {status.value}")
