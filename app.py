from __future__ import annotations

from typing import Any

import streamlit as st

from movienight.catalog.seed import seed_catalog_if_empty
from movienight.config.settings import ensure_runtime_dirs, load_settings, validate_settings
from movienight.db.sqlite_client import get_connection, init_schema
from movienight.lobbies.facade import Database, RegistrationStatus
from movienight.utils.health import readiness
from movienight.utils.invite_text import generate_invite

REGISTRATION_MESSAGES = {
    RegistrationStatus.BLANK_USERNAME: "Username is required.",
    RegistrationStatus.DUPLICATE_USERNAME: "That username is already taken.",
    RegistrationStatus.BLANK_PASSWORD: "Password is required.",
    RegistrationStatus.UNDERAGE: "You must be at least 18 to register.",
}


@st.cache_resource
def get_runtime() -> dict[str, Any]:
    settings = load_settings()
    ensure_runtime_dirs(settings)
    errors = validate_settings(settings)
    warnings: list[str] = []
    conn: Any | None = None
    try:
        conn = get_connection(settings.sqlite_db_path, settings.database_url)
        init_schema(conn)
    except Exception as exc:
        errors.append(f"Database initialization failed: {exc}")

    if conn is not None and not errors and settings.catalog_auto_seed:
        result = seed_catalog_if_empty(conn, settings.movie_catalog_path)
        if result.get("status") == "partial":
            warnings.append("Some catalog entries could not be imported.")
    return {
        "settings": settings,
        "conn": conn,
        "db": Database(conn) if conn is not None else None,
        "errors": errors,
        "warnings": warnings,
    }


def init_state() -> None:
    defaults = {
        "current_view": "auth",
        "username": "",
        "genre_filter": [],
        "search_query": "",
    }
    for key, value in defaults.items():
        if key not in st.session_state:
            st.session_state[key] = value


def title_and_breadcrumb() -> None:
    st.title("MovieNight")
    mapping = {
        "auth": "Sign in",
        "home": "Home",
        "lobby": "Lobby",
        "results": "Results",
        "account": "Account",
    }
    st.caption(
        f"Flow: Home > Lobby > Results | Current: {mapping[st.session_state.current_view]}"
    )


def _go(view: str) -> None:
    st.session_state.current_view = view
    st.rerun()


def _nav_bar() -> None:
    cols = st.columns(4)
    if cols[0].button("Home"):
        _go("home")
    if cols[1].button("Lobby"):
        _go("lobby")
    if cols[2].button("Account"):
        _go("account")
    if cols[3].button("Log out"):
        st.session_state.username = ""
        _go("auth")


def render_auth() -> None:
    db: Database = get_runtime()["db"]
    login_tab, register_tab = st.tabs(["Log in", "Register"])
    with login_tab:
        with st.form("login_form"):
            username = st.text_input("Username")
            password = st.text_input("Password", type="password")
            submitted = st.form_submit_button("Log in")
        if submitted:
            if db.validate_login(username, password):
                st.session_state.username = username.strip()
                _go("home")
            else:
                st.error("Invalid username or password.")
    with register_tab:
        with st.form("register_form"):
            new_username = st.text_input("Username", key="register_username")
            new_password = st.text_input("Password", type="password", key="register_password")
            first_name = st.text_input("First name")
            last_name = st.text_input("Last name")
            age = st.number_input("Age", min_value=0, max_value=130, value=18, step=1)
            registered = st.form_submit_button("Create account")
        if registered:
            try:
                status = db.add_user(new_username, new_password, int(age), first_name, last_name)
            except ValueError as exc:
                st.error(str(exc))
                return
            if status is RegistrationStatus.OK:
                st.success("Account created. You can log in now.")
            else:
                st.error(REGISTRATION_MESSAGES[status])


def render_home() -> None:
    db: Database = get_runtime()["db"]
    username = st.session_state.username
    _nav_bar()
    st.subheader(f"Welcome, {username}")
    owner = db.get_belonging_lobby_owner(username)
    if owner:
        st.info(f"You are in {owner}'s lobby.")
        if st.button("Open lobby"):
            _go("lobby")
    elif st.button("Create a lobby"):
        if db.create_lobby(username):
            _go("lobby")
        st.error("Could not create a lobby.")

    st.markdown("### Invitations")
    invitations = db.get_invitations_for_user(username)
    if not invitations:
        st.caption("No pending invitations.")
    for idx, inv in enumerate(invitations):
        with st.container(border=True):
            st.write(f"{inv['sender']} invited you to {inv['lobby_owner']}'s lobby.")
            accept_col, decline_col = st.columns(2)
            if accept_col.button("Accept", key=f"accept_{idx}"):
                if db.accept_invitation(inv["sender"], inv["lobby_owner"], username):
                    _go("lobby")
                st.error("This invitation is no longer valid.")
            if decline_col.button("Decline", key=f"decline_{idx}"):
                db.remove_invitation_from_user(inv["sender"], inv["lobby_owner"], username)
                st.rerun()


def _render_members(db: Database, owner: str, username: str) -> None:
    st.markdown("### Members")
    st.write(", ".join(db.get_users_at_lobby(owner)) or "No members")
    candidates = [
        name for name in db.get_users() if name not in db.get_users_at_lobby(owner)
    ]
    if candidates:
        receiver = st.selectbox("Invite a friend", candidates)
        if st.button("Send invitation"):
            if db.send_invitation_to_user(username, owner, receiver):
                st.success(f"Invitation sent to {receiver}.")
            else:
                st.warning("Invitation could not be sent.")
    sent = db.get_invitations_of_user(username)
    if sent:
        st.caption("Pending: " + ", ".join(inv["receiver"] for inv in sent))


def _render_suggest(db: Database, owner: str, username: str) -> None:
    st.markdown("### Suggest a movie")
    titles = db.get_movie_titles()
    genres = st.multiselect("Genres", db.get_genres(), key="genre_filter")
    query = st.text_input("Search titles", key="search_query").strip().lower()
    movie_ids = db.find_movie_ids_by_genres(genres)
    matches = [mid for mid in movie_ids if query in titles.get(mid, "").lower()]
    if not matches:
        st.caption("No movies match these filters.")
        return
    choice = st.selectbox(
        "Movie",
        matches,
        format_func=lambda mid: f"{titles[mid]} ({db.get_movie_genres_label(mid)})",
    )
    if st.button("Suggest"):
        if db.suggest_movie(owner, username, int(choice)):
            st.rerun()
        st.warning("That movie is already suggested.")


def _render_ballot(db: Database, owner: str, username: str, is_owner: bool) -> None:
    st.markdown("### Vote")
    titles = db.get_movie_titles()
    tallies = db.get_votes(owner)
    my_votes = set(db.get_vote_movie_ids_of_user(owner, username))
    suggested = db.get_suggestions(owner)
    if not suggested:
        st.caption("No suggestions yet.")
    for movie_id in suggested:
        with st.container(border=True):
            st.markdown(f"**{titles.get(movie_id, movie_id)}** | votes={tallies.get(movie_id, 0)}")
            st.caption(
                f"Suggested by {db.get_suggested_by_username(owner, movie_id) or 'unknown'}"
            )
            vote_col, withdraw_col = st.columns(2)
            if movie_id in my_votes:
                if vote_col.button("Remove vote", key=f"unvote_{movie_id}"):
                    db.remove_vote(owner, username, movie_id)
                    st.rerun()
            elif vote_col.button("Vote", key=f"vote_{movie_id}"):
                db.vote_movie(owner, username, movie_id)
                st.rerun()
            if is_owner and withdraw_col.button("Withdraw", key=f"withdraw_{movie_id}"):
                db.remove_suggestion(owner, movie_id)
                st.rerun()


def render_lobby() -> None:
    db: Database = get_runtime()["db"]
    username = st.session_state.username
    _nav_bar()
    owner = db.get_belonging_lobby_owner(username)
    if not owner:
        st.warning("Create a lobby or accept an invitation first.")
        return
    is_owner = owner == username
    st.subheader(f"{owner}'s lobby")
    if not db.is_lobby_still_voting(owner):
        st.info("Voting is closed for this lobby.")
        if st.button("See results"):
            _go("results")
        return

    _render_members(db, owner, username)
    _render_suggest(db, owner, username)
    _render_ballot(db, owner, username, is_owner)

    st.divider()
    if is_owner:
        close_col, delete_col = st.columns(2)
        if close_col.button("Close voting"):
            db.set_lobby_ready(owner)
            _go("results")
        if delete_col.button("Delete lobby"):
            db.delete_lobby(owner)
            _go("home")
    elif st.button("Leave lobby"):
        db.leave_lobby(owner, username)
        _go("home")


def render_results() -> None:
    db: Database = get_runtime()["db"]
    username = st.session_state.username
    _nav_bar()
    owner = db.get_belonging_lobby_owner(username)
    if not owner:
        st.warning("You are not in a lobby.")
        return
    st.subheader("Results")
    winners = db.get_winner_movies(owner)
    if not winners:
        st.info("No votes were cast.")
        return
    voters = db.get_voters(owner)
    for idx, ranked in enumerate(winners, start=1):
        st.markdown(f"**#{idx} {ranked.title}** | votes={ranked.vote_count}")
        names = voters.get(ranked.movie_id, [])
        if names:
            st.markdown(f"**Voted by:** {', '.join(names)}")
    invite = generate_invite(username, owner, winners[0])
    st.text_area("Invite text", value=invite, height=120)
    if owner == username and st.button("Delete lobby"):
        db.delete_lobby(owner)
        _go("home")


def render_account() -> None:
    db: Database = get_runtime()["db"]
    username = st.session_state.username
    _nav_bar()
    user = db.get_user(username)
    if user is None:
        st.session_state.username = ""
        _go("auth")
    st.subheader("Account")
    with st.form("details_form"):
        first_name = st.text_input("First name", value=user.first_name)
        last_name = st.text_input("Last name", value=user.last_name)
        if st.form_submit_button("Save details"):
            db.update_details(username, first_name, last_name)
            st.success("Details saved.")
    with st.form("password_form"):
        new_password = st.text_input("New password", type="password")
        if st.form_submit_button("Change password"):
            if db.update_password(username, new_password):
                st.success("Password changed.")
            else:
                st.error("Password is required.")
    if st.button("Delete account"):
        db.delete_user(username)
        st.session_state.username = ""
        _go("auth")


def main() -> None:
    st.set_page_config(
        page_title="MovieNight",
        page_icon=":clapper:",
        layout="wide",
        initial_sidebar_state="collapsed",
    )
    init_state()
    runtime = get_runtime()
    if runtime["errors"]:
        st.error("Startup validation failed.")
        for error in runtime["errors"]:
            st.write(f"- {error}")
        return
    for warning in runtime.get("warnings", []):
        st.warning(warning)
    status = readiness(runtime["conn"])
    if not status["ok"]:
        st.error("Readiness check failed.")
        st.json(status)
        return
    if status["dependencies"].get("catalog", "").startswith("degraded"):
        st.warning("The movie catalog is empty. Run the catalog import to add movies.")

    if not st.session_state.username:
        st.session_state.current_view = "auth"
    title_and_breadcrumb()
    if st.session_state.current_view == "auth":
        render_auth()
    elif st.session_state.current_view == "home":
        render_home()
    elif st.session_state.current_view == "lobby":
        render_lobby()
    elif st.session_state.current_view == "results":
        render_results()
    else:
        render_account()


if __name__ == "__main__":
    main()
