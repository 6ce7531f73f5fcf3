"""In-page scripts and selectors used by the render pipeline."""

NO_HYPHENATION_CSS = "* { hyphens: manual !important; -webkit-hyphens: manual !important; }"

TOC_COMPACT_CSS = """
section#ownersmanual > ul { margin-top: 0.5em !important; margin-bottom: 0.5em !important; }
section#ownersmanual > ul li { padding-top: 0.1em !important; padding-bottom: 0.1em !important; }
section#ownersmanual > ul ul { margin-top: 0 !important; margin-bottom: 0 !important; }
"""

STOP_LOADING = "() => window.stop()"

PAGE_TEXT = "() => document.documentElement ? document.documentElement.innerText : ''"

FONTS_STATUS = "() => document.fonts ? document.fonts.status : 'unavailable'"

# Scrolls in steps of `distance` until the bottom is reached or `maxScrolls`
# steps were made. Resolves to a short diagnostic string.
SCROLL_TO_BOTTOM = """
([distance, maxScrolls]) => new Promise((resolve) => {
  const root = document.documentElement;
  const remaining = () => Math.abs(root.scrollHeight - root.clientHeight - root.scrollTop);
  const report = (counter) => "remaining = " + remaining() + ", scrollHeight = " + root.scrollHeight
    + ", scrollTop = " + root.scrollTop + ", scrolls = " + counter + " of " + maxScrolls;
  if (remaining() <= 1) {
    resolve(report(0));
    return;
  }
  let counter = 1;
  const onScrollEnd = () => {
    if (remaining() > 1 && counter < maxScrolls) {
      counter++;
      window.scrollBy({ top: distance, left: 0, behavior: "smooth" });
    } else {
      window.removeEventListener("scrollend", onScrollEnd);
      resolve(report(counter));
    }
  };
  window.addEventListener("scrollend", onScrollEnd);
  window.scrollBy({ top: distance, left: 0, behavior: "smooth" });
})
"""

COLLECT_TOC_LINKS = """
() => Array.from(document.querySelectorAll("body section#ownersmanual > ul a"))
  .map((anchor) => anchor.href)
  .filter((href) => href && href.length > 0)
"""

# Returns the number of chapters that were expanded.
TRANSFORM_TOC = """
(timestamp) => {
  const titles = document.querySelectorAll('body main h1[class^="heading"]');
  if (titles.length > 0) {
    const caption = document.createElement("p");
    caption.innerText = "(" + timestamp + " GMT)";
    titles[0].parentNode.appendChild(caption);
  }
  document.querySelectorAll("body section#ownersmanual > div").forEach((el) => el.remove());
  const buttons = document.querySelectorAll("body section#ownersmanual > ul li button");
  buttons.forEach((button) => {
    button.click();
    button.remove();
  });
  return buttons.length;
}
"""

REMOVE_RELATED = """
() => {
  const elements = document.querySelectorAll("body article + div");
  elements.forEach((el) => el.remove());
  return elements.length;
}
"""

NEUTRALIZE_ANCHORS = """
() => {
  const anchors = document.querySelectorAll("a");
  anchors.forEach((anchor) => {
    const span = document.createElement("span");
    if (anchor.className) span.className = anchor.className;
    if (anchor.id) span.id = anchor.id;
    span.style = "text-decoration-line: none; cursor: default";
    span.innerHTML = anchor.innerHTML;
    anchor.parentNode.replaceChild(span, anchor);
  });
  return anchors.length;
}
"""

# Rejects optional cookie categories through the OneTrust API. Resolves to
# true when the API was present.
REJECT_CONSENT = """
() => {
  const api = window.OneTrust;
  if (!api || typeof api.RejectAll !== "function") return false;
  api.RejectAll();
  if (typeof api.Close === "function") api.Close();
  return true;
}
"""

OVERLAY_SELECTORS = [
    "#onetrust-consent-sdk",
    "#ethnio-campaign-theme",
    "iframe[id^=\"ethnio\"]",
    "iframe[src*=\"ethn.io\"]",
]

# Removes every element matching the given selectors; returns the count.
REMOVE_SELECTORS = """
(selectors) => {
  let removed = 0;
  selectors.forEach((selector) => {
    document.querySelectorAll(selector).forEach((el) => {
      el.remove();
      removed++;
    });
  });
  return removed;
}
"""

HAS_ANY_SELECTOR = """
(selectors) => selectors.some((selector) => document.querySelector(selector) !== null)
"""

CHROME_SELECTORS = ["div:has(site-navigation)", "div#site-footer-embed"]

# Removes each selector's matches and returns the selectors with no match.
REMOVE_CHROME = """
(selectors) => {
  const missing = [];
  selectors.forEach((selector) => {
    const elements = document.querySelectorAll(selector);
    if (elements.length === 0) {
      missing.push(selector);
    }
    elements.forEach((el) => el.remove());
  });
  return missing;
}
"""

# Removes the last horizontal rule of the main content (or the block that
# wraps nothing but that rule) when no element follows it.
REMOVE_TRAILING_RULE = """
() => {
  const rules = document.querySelectorAll("body main hr");
  if (rules.length === 0) return false;
  const rule = rules[rules.length - 1];
  const block = rule.parentElement;
  const wrapped = block && block.tagName !== "MAIN" && block.tagName !== "ARTICLE"
    && block.innerText.trim() === "";
  const target = wrapped ? block : rule;
  if (target.nextElementSibling !== null) return false;
  target.remove();
  return true;
}
"""

# Finds the sign-in / support promo by its text outside the article and
# removes its outermost ancestor (at most `maxDepth` levels up) that does
# not hold the article.
REMOVE_SIGN_IN_PROMO = """
(maxDepth) => {
  const pattern = /\\bsign[ -]?in\\b/i;
  const candidates = Array.from(document.querySelectorAll("body main button, body main span, body main p"))
    .filter((el) => el.closest("article") === null && pattern.test(el.textContent || ""));
  if (candidates.length === 0) return false;
  let node = candidates[candidates.length - 1];
  for (let depth = 0; depth < maxDepth && node.parentElement; depth++) {
    const parent = node.parentElement;
    if (parent.tagName === "MAIN" || parent.tagName === "BODY" || parent.querySelector("article") !== null) break;
    node = parent;
  }
  node.remove();
  return true;
}
"""

# Removes iframes with a non-empty src and returns their URLs.
REMOVE_IFRAMES = """
() => {
  const removed = [];
  document.querySelectorAll("body iframe").forEach((frame) => {
    const src = frame.getAttribute("src");
    if (src && src.length > 0) {
      removed.push(src);
      frame.remove();
    }
  });
  return removed;
}
"""
