"""Page-side capabilities, invoked by name with one structured argument.

Every script is a fixed arrow function. Callers pass data (a selector, a
payload dict) and get data back; selector errors come back as the
``'Invalid selector'`` string instead of a thrown exception.
"""

from __future__ import annotations


ELEMENT_PRESENT_JS = """
(selector) => {
    try {
        return { result: document.querySelector(selector) !== null };
    } catch (e) {
        return { error: 'Invalid selector', result: false };
    }
}
"""

# Fingerprint of every node matching a selector, used to detect mutations
DOM_DATA_JS = """
(selector) => {
    try {
        const elements = Array.from(document.querySelectorAll(selector));
        return { result: elements.map((el) => el.outerHTML).join('') };
    } catch (e) {
        return { error: 'Invalid selector', result: '' };
    }
}
"""

CLICK_JS = """
({ selector, filter }) => {
    let element;
    try {
        if (filter) {
            const regex = new RegExp(filter.pattern, filter.flags);
            const matches = Array.from(document.querySelectorAll(selector))
                .filter((el) => regex.test(el.textContent));
            element = matches[matches.length - 1];
        } else {
            element = document.querySelector(selector);
        }
    } catch (e) {
        return 'Invalid selector';
    }
    if (!element) return 'Element not found';
    const event = document.createEvent('MouseEvent');
    event.initEvent('click', true, true);
    element.dispatchEvent(event);
    return null;
}
"""

TYPE_JS = """
({ selector, text }) => {
    let element;
    try {
        element = document.querySelector(selector);
    } catch (e) {
        return 'Invalid selector';
    }
    if (!element) return 'Element not found';
    const event = document.createEvent('MouseEvent');
    event.initEvent('click', true, true);
    element.dispatchEvent(event);
    element.value = text;
    return null;
}
"""

CHECK_JS = """
(selector) => {
    let element;
    try {
        element = document.querySelector(selector);
    } catch (e) {
        return 'Invalid selector';
    }
    if (!element) return 'Element not found';
    element.checked = true;
    const event = document.createEvent('HTMLEvents');
    event.initEvent('change', true, true);
    element.dispatchEvent(event);
    return null;
}
"""

SELECT_JS = """
({ selector, option }) => {
    let element;
    try {
        element = document.querySelector(selector);
    } catch (e) {
        return 'Invalid selector';
    }
    if (!element) return 'Element not found';
    element.value = option;
    const event = document.createEvent('HTMLEvents');
    event.initEvent('change', true, true);
    element.dispatchEvent(event);
    return null;
}
"""

VISIBLE_JS = """
(selector) => {
    try {
        const element = document.querySelector(selector);
        return element ? element.offsetWidth > 0 && element.offsetHeight > 0 : false;
    } catch (e) {
        return false;
    }
}
"""

EXISTS_JS = """
(selector) => {
    try {
        return document.querySelector(selector) !== null;
    } catch (e) {
        return false;
    }
}
"""

# null scrolls to the bottom
SCROLL_TO_JS = """
(top) => {
    const root = document.scrollingElement || document.body;
    if (top === null || top === undefined) {
        root.scrollTop += 9999999;
    } else {
        root.scrollTop = top;
    }
}
"""

LOCATION_JS = "() => document.location.href"

TITLE_JS = "() => document.title"

ZOOM_JS = """
(factor) => {
    document.body.style.zoom = String(factor);
}
"""


PAGE_SCRIPTS: dict[str, str] = {
    "elementPresent": ELEMENT_PRESENT_JS,
    "domData": DOM_DATA_JS,
    "click": CLICK_JS,
    "type": TYPE_JS,
    "check": CHECK_JS,
    "select": SELECT_JS,
    "visible": VISIBLE_JS,
    "exists": EXISTS_JS,
    "scrollTo": SCROLL_TO_JS,
    "location": LOCATION_JS,
    "title": TITLE_JS,
    "zoom": ZOOM_JS,
}


def page_script(name: str) -> str:
    """Look up a registered capability by name."""
    try:
        return PAGE_SCRIPTS[name]
    except KeyError:
        raise ValueError(f"unknown page script: {name!r}") from None
