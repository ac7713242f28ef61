"""Constants describing archived action reports and their metric columns."""

from enum import Enum

DEFAULT_ARCHIVE_URL = "http://localhost:8080/api/"

# Archived record names, one per action report.
PAGE_URLS = "Actions_actions_url"
PAGE_TITLES = "Actions_actions"
DOWNLOADS = "Actions_downloads"
OUTLINKS = "Actions_outlink"
SITE_SEARCH = "Actions_sitesearch"
CUSTOM_VARIABLES = "CustomVariables_valueByName"

NUMERIC_PREFIX = "Actions_"

# Reserved custom variable under which site search categories are tracked.
SEARCH_CATEGORY_VARIABLE = "_pk_scat"

SUMMARY_ROW_ID = -1
SUMMARY_ROW_LABEL = "Others"


class ActionKind(Enum):
    """Kinds of tracked actions; selects how a searched value is split into segments."""

    PAGE_URL = 1
    OUTLINK = 2
    DOWNLOAD = 3
    PAGE_TITLE = 4
    SITE_SEARCH = 8


# Integer column ids used in archived blobs.
INDEX_NB_UNIQ_VISITORS = 1
INDEX_NB_VISITS = 2
INDEX_NB_ACTIONS = 3
INDEX_PAGE_NB_HITS = 12
INDEX_PAGE_SUM_TIME_SPENT = 13
INDEX_PAGE_EXIT_NB_UNIQ_VISITORS = 14
INDEX_PAGE_EXIT_NB_VISITS = 15
INDEX_PAGE_EXIT_SUM_DAILY_NB_UNIQ_VISITORS = 16
INDEX_PAGE_ENTRY_NB_UNIQ_VISITORS = 17
INDEX_PAGE_ENTRY_SUM_DAILY_NB_UNIQ_VISITORS = 18
INDEX_PAGE_ENTRY_NB_VISITS = 19
INDEX_PAGE_ENTRY_NB_ACTIONS = 20
INDEX_PAGE_ENTRY_SUM_VISIT_LENGTH = 21
INDEX_PAGE_ENTRY_BOUNCE_COUNT = 22
INDEX_SITE_SEARCH_HAS_NO_RESULT = 28
INDEX_NB_HITS_FOLLOWING_SEARCH = 29
INDEX_PAGE_SUM_TIME_GENERATION = 30
INDEX_PAGE_NB_HITS_WITH_TIME_GENERATION = 31
INDEX_PAGE_MIN_TIME_GENERATION = 32
INDEX_PAGE_MAX_TIME_GENERATION = 33

COLUMN_NAMES: dict[int, str] = {
    INDEX_NB_UNIQ_VISITORS: "nb_uniq_visitors",
    INDEX_NB_VISITS: "nb_visits",
    INDEX_NB_ACTIONS: "nb_actions",
    INDEX_PAGE_NB_HITS: "nb_hits",
    INDEX_PAGE_SUM_TIME_SPENT: "sum_time_spent",
    INDEX_PAGE_EXIT_NB_UNIQ_VISITORS: "exit_nb_uniq_visitors",
    INDEX_PAGE_EXIT_NB_VISITS: "exit_nb_visits",
    INDEX_PAGE_EXIT_SUM_DAILY_NB_UNIQ_VISITORS: "sum_daily_exit_nb_uniq_visitors",
    INDEX_PAGE_ENTRY_NB_UNIQ_VISITORS: "entry_nb_uniq_visitors",
    INDEX_PAGE_ENTRY_SUM_DAILY_NB_UNIQ_VISITORS: "sum_daily_entry_nb_uniq_visitors",
    INDEX_PAGE_ENTRY_NB_VISITS: "entry_nb_visits",
    INDEX_PAGE_ENTRY_NB_ACTIONS: "entry_nb_actions",
    INDEX_PAGE_ENTRY_SUM_VISIT_LENGTH: "entry_sum_visit_length",
    INDEX_PAGE_ENTRY_BOUNCE_COUNT: "entry_bounce_count",
    INDEX_SITE_SEARCH_HAS_NO_RESULT: "nb_visits_no_result",
    INDEX_NB_HITS_FOLLOWING_SEARCH: "nb_hits_following_search",
    INDEX_PAGE_SUM_TIME_GENERATION: "sum_time_generation",
    INDEX_PAGE_NB_HITS_WITH_TIME_GENERATION: "nb_hits_with_time_generation",
    INDEX_PAGE_MIN_TIME_GENERATION: "min_time_generation",
    INDEX_PAGE_MAX_TIME_GENERATION: "max_time_generation",
}

# Columns merged with something other than a sum when rows are grouped.
COLUMN_AGGREGATIONS: dict[str, str] = {
    "min_time_generation": "min",
    "max_time_generation": "max",
}

# Numeric records backing the overview report; stored as ``Actions_<name>``.
OVERVIEW_METRICS = [
    "nb_pageviews",
    "nb_uniq_pageviews",
    "nb_downloads",
    "nb_uniq_downloads",
    "nb_outlinks",
    "nb_uniq_outlinks",
    "nb_searches",
    "nb_keywords",
]
