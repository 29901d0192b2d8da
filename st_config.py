"""
st_config — settings for the Survey Tool forum engine.

Every value can be overridden with an environment variable of the same name,
so the CLI and server.py can be pointed at another Survey Tool instance
without editing this file:

    ST_BASE_URL=https://st.unicode.org/cldr-apps ST_SESSION_ID=abc123 stforum show fr_CA
"""

import os

# Survey Tool root; SurveyAjax is appended to it
ST_BASE_URL   = os.environ.get("ST_BASE_URL", "http://localhost:8080/cldr-apps")
ST_SESSION_ID = os.environ.get("ST_SESSION_ID", "")

ST_DEFAULT_LOCALE = os.environ.get("ST_DEFAULT_LOCALE", "fr_CA")

# Seconds
ST_FETCH_TIMEOUT = float(os.environ.get("ST_FETCH_TIMEOUT", "25"))
ST_PROXY         = os.environ.get("ST_PROXY") or None

# The user the posting policy and the "mine" filter act for
ST_USER_ID    = int(os.environ.get("ST_USER_ID", "0"))
ST_USER_NAME  = os.environ.get("ST_USER_NAME", "")
ST_USER_IS_TC = os.environ.get("ST_USER_IS_TC", "0").lower() in ("1", "true", "yes")

ST_SERVER_PORT = int(os.environ.get("ST_SERVER_PORT", "8001"))
