from extraction.links import find_json_source_link, find_next_page_link, JSON_LINK_SELECTORS, NEXT_LINK_SELECTORS
from extraction.filters import accepts, filter_records
