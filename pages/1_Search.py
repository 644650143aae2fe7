import streamlit as st

from clinic_finder.app_logic import (
    EMPTY_RESULTS_MESSAGE,
    SEARCH_ERROR_MESSAGE,
    ClinicSearchError,
    SearchSession,
    get_suggestions,
    search_by_treatments,
)
from clinic_finder.data.ingestion import get_clinic_store, load_clinic_frame
from clinic_finder.utils.cleaning import STATE_CODES
from clinic_finder.utils.config import get_search_config
from clinic_finder.utils.filters import ClinicFilter, UnknownFilterError
from clinic_finder.utils.geocoding import geolocation_error_message, reverse_geocode
from clinic_finder.utils.scoring import SENTINEL_DISTANCE
from clinic_finder.utils.suggestions import COMMON_SERVICES, COMMON_TREATMENTS
from clinic_finder.utils.validation import validate_coordinates, validate_location_query, validate_radius

TIER_BADGES = {"advanced": "⭐ Advanced", "standard": "✔️ Standard", "free": ""}

search_config = get_search_config()

st.title("🔎 Find a Men's Health Clinic")
st.markdown("Search TRT, ED, hair loss and weight loss clinics near you.")

try:
    store = get_clinic_store()
    clinic_df = load_clinic_frame()
except Exception as e:
    st.error("❌ Failed to load the clinic directory. Please try again later.")
    st.info(f"**Error Type:** {type(e).__name__}")
    st.stop()

if "search_session" not in st.session_state:
    st.session_state["search_session"] = SearchSession(store, page_size=search_config["page_size"])
session: SearchSession = st.session_state["search_session"]

# "Near me" links carry the browser position (or its failure code) as query params
params = st.query_params
if "geo_error" in params:
    try:
        geo_code = int(params["geo_error"])
    except (TypeError, ValueError):
        geo_code = None
    st.warning(geolocation_error_message(geo_code))

near_me_lat = params.get("lat")
near_me_lng = params.get("lng")
if near_me_lat is not None and near_me_lng is not None:
    try:
        place = reverse_geocode(float(near_me_lat), float(near_me_lng))
    except (TypeError, ValueError):
        place = None
    if place:
        st.caption(f"📍 Using your location near {place['city']}, {place['state']}. Type a city to search elsewhere.")
    else:
        st.caption("📍 Using your current location. Type a city to search elsewhere.")

st.divider()
st.subheader("📍 Location")

col1, col2 = st.columns([3, 1])
with col1:
    location = st.text_input(
        "City and state or ZIP code",
        st.session_state.get("location", ""),
        help="For example 'Austin, TX' or '78701'",
    )
with col2:
    radius = st.slider(
        "Radius (miles)",
        5,
        int(search_config["max_radius_miles"]),
        int(st.session_state.get("radius", search_config["default_radius_miles"])),
        5,
    )

search_term = st.text_input(
    "Treatment, service or clinic name",
    st.session_state.get("search_term", ""),
    help="Try 'TRT', 'bpc-157' or a clinic name",
)

suggestions = get_suggestions(search_term, clinic_df)
if any(suggestions.values()):
    with st.container(border=True):
        if suggestions["services"]:
            st.caption("Services: " + ", ".join(suggestions["services"]))
        if suggestions["treatments"]:
            st.caption("Treatments: " + ", ".join(suggestions["treatments"]))
        if suggestions["clinics"]:
            st.caption("Clinics: " + ", ".join(f"{c['name']} ({c['city']}, {c['state']})" for c in suggestions["clinics"]))
        if suggestions["locations"]:
            st.caption("Locations: " + ", ".join(f"{loc['city']}, {loc['state']}" for loc in suggestions["locations"]))

with st.expander("⚙️ Filters"):
    fcol1, fcol2, fcol3 = st.columns(3)
    with fcol1:
        state_options = ["Any"] + sorted(STATE_CODES)
        state = st.selectbox("State", state_options)
    with fcol2:
        tier = st.selectbox("Listing level", ["Any", "advanced", "standard", "free"])
    with fcol3:
        verified_only = st.checkbox("Verified clinics only", value=False)
    services = st.multiselect("Services", COMMON_SERVICES)


def _build_request():
    filters = {
        "searchTerm": search_term.strip() or None,
        "state": None if state == "Any" else state,
        "tier": None if tier == "Any" else tier,
        "verifiedOnly": verified_only,
        "services": services,
    }

    typed_location = location.strip()
    if near_me_lat is not None and near_me_lng is not None and not typed_location:
        try:
            lat, lng = float(near_me_lat), float(near_me_lng)
        except (TypeError, ValueError):
            return None, None, "Invalid location in link"
        ok, message = validate_coordinates(lat, lng)
        if not ok:
            return None, None, message
        filters.update({"lat": lat, "lng": lng, "radius": radius})
        typed_location = None
    elif typed_location:
        ok, message = validate_location_query(typed_location)
        if not ok:
            return None, None, message
        filters["radius"] = radius
    else:
        typed_location = None

    ok, message = validate_radius(radius, search_config["max_radius_miles"])
    if not ok:
        return None, None, message

    try:
        return ClinicFilter.from_mapping(filters), typed_location, None
    except (UnknownFilterError, ValueError) as e:
        return None, None, str(e)


def _run(filters, typed_location):
    st.session_state.pop("search_error", None)
    try:
        with st.spinner("🔍 Searching clinics..."):
            page = session.search(filters, location=typed_location)
        session.commit(page)
        if page.reference is not None and page.reference.is_fallback:
            st.info(page.reference.message or "We couldn't find that location, so results are ordered from the center of the US.")
    except ClinicSearchError:
        st.session_state["search_error"] = True


if st.button("🔍 Search", type="primary"):
    filters, typed_location, problem = _build_request()
    if problem:
        st.error(f"⚠️ {problem}")
    else:
        st.session_state.update(
            {
                "location": location,
                "radius": radius,
                "search_term": search_term,
                "last_request": (filters, typed_location),
            }
        )
        _run(filters, typed_location)

if st.session_state.get("search_error"):
    st.error(SEARCH_ERROR_MESSAGE)
    if st.button("🔁 Retry") and "last_request" in st.session_state:
        _run(*st.session_state["last_request"])
        st.rerun()

st.divider()

if session.generation and not st.session_state.get("search_error"):
    if session.is_empty:
        st.info(EMPTY_RESULTS_MESSAGE)
    else:
        st.subheader(f"{len(session.results)} clinics")
        for _, clinic in session.results.iterrows():
            with st.container(border=True):
                ccol1, ccol2 = st.columns([4, 1])
                with ccol1:
                    badge = TIER_BADGES.get(clinic["tier"], "")
                    verified = " ✅ Verified" if clinic["verified"] else ""
                    st.markdown(f"**{clinic['name']}** {badge}{verified}")
                    st.caption(f"{clinic['city']}, {clinic['state']}")
                    if clinic["services"]:
                        st.caption(" · ".join(clinic["services"]))
                    distance = clinic.get("distance")
                    if distance is not None and distance != SENTINEL_DISTANCE:
                        st.caption(f"{distance:.1f} miles away")
                with ccol2:
                    if st.button("View", key=f"view_{clinic['id']}"):
                        st.session_state["selected_clinic_id"] = clinic["id"]
                        st.session_state["selected_from_term"] = session.filters.search_term
                        st.switch_page("pages/2_Clinic.py")

    if session.has_more and st.button("Load more"):
        try:
            page = session.load_more()
            if page is not None:
                session.commit(page)
        except ClinicSearchError:
            st.session_state["search_error"] = True
        st.rerun()

with st.expander("💊 Search by treatments"):
    picked = st.multiselect("Treatments (up to 5)", COMMON_TREATMENTS, max_selections=5)
    if st.button("Find clinics offering these") and picked:
        try:
            with st.spinner("Searching treatments..."):
                matches = search_by_treatments(store, picked, location=location.strip() or None)
        except ClinicSearchError:
            st.error(SEARCH_ERROR_MESSAGE)
        else:
            if matches.empty:
                st.info(EMPTY_RESULTS_MESSAGE)
            else:
                st.dataframe(
                    matches[["name", "city", "state", "tier", "matchCount"]],
                    hide_index=True,
                )
