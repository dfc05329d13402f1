"""Descriptors, markers and text patterns for the learning platform's pages."""
import re

from .locator import ElementDescriptor as D

# URL fragments that mean "this is a login page"
LOGIN_URL_MARKERS = ("/login", "/passport")

# ---- Login ----

# Home page "log in" entry (opens the login modal)
HOME_LOGIN_BUTTON = [
    D("login-entry", "span.ml10.mr5.current.c-white"),
    D("login-entry", "a:has-text('登录')"),
    D("login-entry", "span:has-text('登录')"),
]

# Modal login (home page popup) or standalone login page
LOGIN_FORM = [
    D("login-form", ".ant-modal-content"),
    D("login-form", "#login"),
]

ACCOUNT_LOGIN_TAB = [
    D("account-tab", "div.ant-tabs-tab-btn", has_text="账号登录"),
    D("account-tab", ".ant-tabs-tab", has_text="账号登录"),
]

USERNAME_FIELD = [
    D("username-field", "#login"),
    D("username-field", "input[name='login']"),
    D("username-field", "input[autocomplete='username']"),
]

PASSWORD_FIELD = [
    D("password-field", "#password"),
    D("password-field", "input[type='password']"),
]

# Submit (order matters: exact type first, styling class last)
LOGIN_SUBMIT = [
    D("login-submit", 'button[type="submit"]'),
    D("login-submit", role="button", name="登录"),
    D("login-submit", "button:has-text('登录')"),
    D("login-submit", "button.ant-btn-primary"),
]

LOGIN_SUCCESS_MARKERS = [
    D("login-success", ".ant-avatar"),
    D("login-success", "text=我的实训"),
]

LOGIN_ERROR_MARKERS = [
    D("login-error", ".ant-form-explain"),
    D("login-error", ".ant-message-error"),
]

CAPTCHA_MARKERS = [
    D("captcha", ".geetest_widget"),
    D("captcha", "#captcha"),
]

# Any of these on a non-login URL still means the session is gone
LOGIN_EVIDENCE = [
    D("login-evidence", "input[type='password']"),
    D("login-evidence", ".ant-tabs-tab", has_text="账号登录"),
    D("login-evidence", "button:has-text('登录')"),
]

# ---- Course navigation ----

AD_CLOSE = [
    D("ad-close", ".close___PycHq"),
    D("ad-close", "[class*='close___']"),
]

HOME_ENTRY = [
    D("home-entry", "section.ant-dropdown-trigger.height67___asp2E"),
    D("home-entry", ".ant-avatar"),
    D("home-entry", "text=我的实训"),
    D("home-entry", "li.nav-item > a[href*='/users/']"),
]

# {course} is filled with the configured course name
COURSE_LINK = [
    D("course-link", '.name___Fpf90:has-text("{course}")'),
    D("course-link", 'a:has-text("{course}")'),
    D("course-link", "text={course}"),
]

PAGE_CONTAINER = [
    D("page-container", "aside.edu-container"),
    D("page-container", "main.ant-layout-content"),
    D("page-container", "section.leftMenu___aMBG9"),
    D("page-container", "div.ant-layout"),
]

# ---- Lab list ----

HOMEWORK_TAB = [
    D("homework-tab", 'div:has-text("实训作业")', has=".icon-shixunzuoye1"),
    D("homework-tab", 'div:has-text("实训作业") >> nth=-1'),
]

ALL_FILTER = [
    D("all-filter", "li.ant-menu-item", has_text=re.compile(r"^全部$")),
]

SUBMITTING_TAB = [
    D("submitting-tab", '.ant-menu-item:has-text("提交中")'),
]

LAB_ITEM = [
    D("lab-item", ".listItem___Kb3j3"),
    D("lab-item", "div[class*='listItem']"),
    D("lab-item", ".ant-list-item"),
    D("lab-item", ".ant-card"),
    D("lab-item", "tr.ant-table-row"),
]

# Looked up inside one lab item
LAB_COMPLETED_MARKER = ".iconfont.icon-yiwancheng1"
LAB_NAME = [
    D("lab-name", ".name___CCaOX"),
    D("lab-name", "h3, .name, .title, a[title]"),
]

# {lab} is filled with the lab name
LAB_DETAIL_LINK = [
    D("lab-detail", '.listItem___Kb3j3:has(.name___CCaOX:text-is("{lab}")) .titleLeft___iZ9Qh'),
    D("lab-detail", '.listItem___Kb3j3:has-text("{lab}") .titleLeft___iZ9Qh'),
    D("lab-detail", '.listItem___Kb3j3:has-text("{lab}")'),
    D("lab-detail", '.flexBox____AlDk:has-text("开始学习")'),
    D("lab-detail", 'a[href*="detail?tabs=1"]:has-text("{lab}")'),
    D("lab-detail", 'a[href*="detail?tabs=1"]'),
]
DETAIL_URL_PATTERN = re.compile(r"detail")

# ---- Level entry and switching ----

EDITOR_SELECTOR = ".monaco-editor, .CodeMirror, .view-lines"

LEVEL_ENTRY = [
    D("level-entry", 'p:has(.iconfont.icon-kaiqizhong):has-text("继续挑战")'),
    D("level-entry", 'p:has(.iconfont.icon-kaiqizhong):has-text("查看实战")'),
    D("level-entry", "text=继续挑战"),
    D("level-entry", "text=查看实战"),
    D("level-entry", "text=开始实训"),
    D("level-entry", "text=继续实训"),
    D("level-entry", ".rightMenu___pcK7x"),
]

TASK_ITEM = ".task-item-container"
TASK_LIST_TRIGGER = [
    D("task-list-trigger", 'a[title="查看全部任务"]'),
    D("task-list-trigger", ".icon-gongnengliebiao"),
    D("task-list-trigger", ".icon-bars"),
    D("task-list-trigger", ".task-list-trigger"),
    D("task-list-trigger", "text=查看全部任务"),
]

LOCKED_TEXTS = ("完成上一关才能解锁", "上一关未完成")

# ---- Evaluation and advancing ----

EVALUATE_BUTTON = [
    D("evaluate-button", ".btn-run___fh7pl"),
    D("evaluate-button", "button[title='运行评测']"),
    D("evaluate-button", "button:has-text('测评')"),
    D("evaluate-button", "button:has-text('提交评测')"),
    D("evaluate-button", "#submit_code_btn"),
    D("evaluate-button", ".submit-code-btn"),
    D("evaluate-button", "button:has-text('评测')"),
]

NEXT_LEVEL = [
    D("next-button", "a.current:has-text('下一关')"),
    D("next-button", "a.ghost-link___Y8dGm"),
    D("next-button", "a:has-text('下一关')"),
    D("next-button", "button:has-text('下一关')"),
]

EVALUATION_SUCCESS = [
    D("eval-success", ".success-msg"),
    D("eval-success", "text=恭喜"),
    D("eval-success", "text=通关"),
    D("eval-success", "text=正确"),
    *NEXT_LEVEL,
    D("eval-success", ".evaluate-result-body"),
    D("eval-success", ".test-result.success:has-text('全部通过')"),
]

EVALUATION_FAILURE = [
    D("eval-failure", ".error-msg"),
    D("eval-failure", "text=失败"),
    D("eval-failure", "text=错误"),
]

RESULT_POPUP_CLOSE = [
    D("popup-close", "a.close-line"),
    D("popup-close", ".icon-roundclose"),
]
RESULT_POPUP_BODY = ".evaluate-result-body, .close-line"

# "complete" wins over "next" when both are visible
NEXT_OR_COMPLETE = [
    D("complete-marker", "a.current:has-text('完成')"),
    D("complete-marker", "a:has-text('完成')"),
    D("next-button", "a.ghost-link___Y8dGm:has-text('下一关')"),
    D("next-button", "div.tc a:has-text('下一关')"),
    D("next-button", "a.current:has-text('下一关')"),
    D("next-button", "a:has-text('下一关')"),
    D("next-button", "button:has-text('下一关')"),
]

# ---- Content ----

CHOICE_CONTAINER = "ul.choose-container"
CHOICE_QUESTION = "ul.choose-container > li"
CHOICE_OPTION = ".option .ant-checkbox-wrapper, .option .ant-radio-wrapper"
CHOICE_CHECKED_CLASSES = ("ant-checkbox-wrapper-checked", "ant-radio-wrapper-checked", "checked")


def level_pattern(index: int) -> "re.Pattern[str]":
    """Task-item label for level `index`: "3. Title" or "第3关" (never matches "13.")."""
    return re.compile(rf"(?:^|\s){index}\.|第{index}关")


def is_login_url(url: str) -> bool:
    return any(m in (url or "") for m in LOGIN_URL_MARKERS)
