import pandas as pd
import streamlit as st

from clinic_finder.app_logic import ClinicSearchError, get_nearby_clinics, record_clinic_view
from clinic_finder.data.ingestion import get_clinic_store
from clinic_finder.utils.cleaning import has_valid_coordinates, normalize_clinic_record

store = get_clinic_store()

# Deep links use ?slug=...; the search page hands over the id in session state
slug = st.query_params.get("slug")
clinic_id = st.session_state.get("selected_clinic_id")
record = store.get_by_slug(slug) if slug else store.get(clinic_id) if clinic_id is not None else None

if record is None:
    st.warning("Clinic not found. Pick a clinic from the search page.")
    if st.button("⬅️ Back to search"):
        st.switch_page("pages/1_Search.py")
    st.stop()

clinic = normalize_clinic_record(record)

# One view per clinic per browser session
viewed = st.session_state.setdefault("viewed_clinics", set())
if clinic["id"] not in viewed:
    if record_clinic_view(store, clinic["id"], st.session_state.get("selected_from_term")):
        viewed.add(clinic["id"])

st.title(clinic["name"])
st.caption(f"{clinic['address']}, {clinic['city']}, {clinic['state']} {clinic['zip']}".strip(", "))

col1, col2 = st.columns(2)
with col1:
    st.markdown(f"**Listing level:** {clinic['tier'].title()}")
    st.markdown(f"**Verified:** {'Yes' if clinic['verified'] else 'No'}")
    if clinic["phone"]:
        st.markdown(f"**Phone:** {clinic['phone']}")
    if clinic["website"]:
        st.markdown(f"**Website:** [{clinic['website']}]({clinic['website']})")
with col2:
    if clinic["services"]:
        st.markdown("**Services**")
        st.markdown("\n".join(f"- {s}" for s in clinic["services"]))

if has_valid_coordinates(clinic["lat"], clinic["lng"]):
    st.map(pd.DataFrame({"lat": [clinic["lat"]], "lon": [clinic["lng"]]}), zoom=11)

    st.divider()
    st.subheader("Nearby clinics")
    try:
        nearby = get_nearby_clinics(store, clinic["lat"], clinic["lng"], radius_miles=25, max_results=6)
    except ClinicSearchError:
        nearby = None
        st.info("Nearby clinics are unavailable right now.")
    if nearby is not None:
        nearby = nearby[nearby["id"] != clinic["id"]]
        if nearby.empty:
            st.caption("No other clinics within 25 miles.")
        else:
            for _, other in nearby.iterrows():
                st.markdown(f"- **{other['name']}** ({other['city']}, {other['state']}) · {other['distance']:.1f} mi")

if st.button("⬅️ Back to search"):
    st.switch_page("pages/1_Search.py")
