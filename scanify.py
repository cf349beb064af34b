import streamlit as st
import cv2
import numpy as np
from PIL import Image
from io import BytesIO

from pagescan import EnhanceMode, Outcome, PageCollection, ScanConfig, ScanError, ScanSession, process_image
from pagescan.config import PRESETS
from pagescan.quad import CORNER_NAMES

# ---------------------- Custom CSS ----------------------
st.markdown("""
<style>
    html, body, [class*="css"] {
        font-family: 'Segoe UI', system-ui, sans-serif;
    }
    .header {
        text-align: center;
        padding: 2rem 0;
        border-bottom: 2px solid #e0e0e0;
        margin-bottom: 2rem;
    }
    .title {
        color: #2c3e50;
        font-size: 2.5rem;
        font-weight: 700;
        margin: 0.5rem 0;
    }
    .subheader {
        color: #7f8c8d;
        font-size: 1.1rem;
    }
    .stDownloadButton button {
        background: #3498db !important;
        color: white !important;
        border-radius: 25px;
        padding: 0.5rem 2rem;
    }
</style>
""", unsafe_allow_html=True)


# ---------------------- STATE ----------------------

# Reads the sidebar controls into a config
def sidebar_config():
    st.sidebar.markdown("### ⚙️ Settings")
    preset = st.sidebar.selectbox("Edge thresholds", sorted(PRESETS), help="Ratio of max gradient or fixed 30/100")
    mode = st.sidebar.radio("Enhancement", [m.value for m in EnhanceMode],
                            format_func=lambda v: v.replace("-", " / ").capitalize())
    brightness = contrast = 0
    if mode == EnhanceMode.BRIGHTNESS_CONTRAST.value:
        brightness = st.sidebar.slider("Brightness %", -50, 50, 0)
        contrast = st.sidebar.slider("Contrast %", -50, 50, 0)
    return ScanConfig.preset(preset, enhance_mode=EnhanceMode(mode), brightness=brightness, contrast=contrast)


# One session per browser tab; pages survive config changes
def get_session(config):
    state = st.session_state
    if "pages" not in state:
        state.pages = PageCollection()
    session = state.get("session")
    if session is None or session.config != config:
        session = ScanSession(config, pages=state.pages)
        state.session = session
        state.loaded_key = None
    return session


def clear_corner_widgets():
    for index in range(4):
        st.session_state.pop(f"corner_{index}_x", None)
        st.session_state.pop(f"corner_{index}_y", None)


def load_upload(uploaded_file):
    image = Image.open(uploaded_file).convert("RGBA")
    return np.array(image)


# Draws the quad and numbered corner handles on a copy of the image
def draw_overlay(img, corners):
    overlay = np.ascontiguousarray(img[:, :, :3]).copy()
    pts = np.array(corners, dtype=np.int32).reshape(-1, 1, 2)
    thickness = max(2, min(overlay.shape[:2]) // 200)
    cv2.polylines(overlay, [pts], isClosed=True, color=(66, 133, 244), thickness=thickness)
    for index, (x, y) in enumerate(corners):
        centre = (int(round(x)), int(round(y)))
        cv2.circle(overlay, centre, thickness * 5, (66, 133, 244), -1)
        cv2.putText(overlay, str(index + 1), (centre[0] - thickness * 2, centre[1] + thickness * 2),
                    cv2.FONT_HERSHEY_SIMPLEX, thickness * 0.4, (255, 255, 255), thickness)
    return overlay


# ---------------------- MAIN APP ----------------------
def main():
    st.markdown("""
        <div class="header">
            <h1 class="title">📄 Scanify</h1>
            <p class="subheader">Detect, adjust and flatten document photos</p>
        </div>
    """, unsafe_allow_html=True)

    try:
        config = sidebar_config()
    except ScanError as e:
        st.error(f"⚠️ Invalid settings: {e}")
        return
    session = get_session(config)

    if st.sidebar.button("Reset scan"):
        session.reset()
        st.session_state.loaded_key = None

    uploaded_files = st.file_uploader("Upload one or more images",
                                      type=["jpg", "jpeg", "png"],
                                      accept_multiple_files=True,
                                      help="Upload document images",
                                      key="multi_uploader")

    if uploaded_files:
        if st.button("⚡ Scan all automatically"):
            with st.spinner('🔍 Scanning documents...'):
                for uploaded_file in uploaded_files:
                    try:
                        page, detection = process_image(load_upload(uploaded_file), config)
                        session.pages.append(page, detection.quad, detection.method)
                    except ScanError as e:
                        st.error(f"⚠️ Error processing {uploaded_file.name}: {str(e)}")

        names = [f.name for f in uploaded_files]
        choice = st.selectbox("Adjust and scan one page", names)
        uploaded_file = uploaded_files[names.index(choice)]
        key = (uploaded_file.name, uploaded_file.size)

        if st.session_state.get("loaded_key") != key:
            try:
                with st.spinner('🔍 Detecting document edges...'):
                    detection = session.load(load_upload(uploaded_file))
                st.session_state.loaded_key = key
                clear_corner_widgets()
                if detection.fallback_used:
                    st.warning("No document outline found, using the default margins. Adjust the corners below.")
            except ScanError as e:
                st.error(f"⚠️ Error processing {uploaded_file.name}: {str(e)}")

        if session.corners is not None:
            adjust_and_rectify(session)

    show_pages(session.pages)

    # Footer
    st.markdown("---")
    st.markdown("""
        <div style="text-align: center; color: #7f8c8d; margin-top: 3rem;">
            <p>Scanify • Powered by OpenCV, NumPy & Streamlit</p>
        </div>
    """, unsafe_allow_html=True)


def adjust_and_rectify(session):
    image = session.image
    height, width = image.shape[:2]

    left, right = st.columns(2)
    with left:
        st.image(draw_overlay(image, session.corners.corners), caption="Detected outline",
                 use_container_width=True)
    with right:
        if session.detection is not None and session.detection.edges is not None:
            st.image(session.detection.edges, caption="Canny edges", use_container_width=True, clamp=True)
        st.caption(f"Method: {session.detection.method.value}")

    st.markdown("#### ✋ Adjust corners")
    columns = st.columns(4)
    for index, (column, name) in enumerate(zip(columns, CORNER_NAMES)):
        x, y = session.corners.corners[index]
        max_x, max_y = float(width - 1), float(height - 1)
        with column:
            new_x = st.number_input(f"{index + 1}. {name} x", 0.0, max_x, min(max(x, 0.0), max_x),
                                    step=1.0, key=f"corner_{index}_x")
            new_y = st.number_input(f"{index + 1}. {name} y", 0.0, max_y, min(max(y, 0.0), max_y),
                                    step=1.0, key=f"corner_{index}_y")
        if (new_x, new_y) != (x, y):
            session.move_corner(index, (new_x, new_y))

    if st.button("📐 Rectify and add page", type="primary"):
        result = session.rectify()
        if result.outcome == Outcome.FAILED:
            st.error(f"⚠️ Could not rectify: {result.error}")
        else:
            if result.outcome == Outcome.FALLBACK_USED:
                st.info("Page added using the default margins.")
            else:
                st.success(f"Page {result.page.sequence_id} added.")
            st.session_state.loaded_key = None
            clear_corner_widgets()


def show_pages(pages):
    if not len(pages):
        return
    st.markdown("### 📄 Scanned Pages")
    for page in pages:
        st.image(page.pixels, caption=f"Page {page.sequence_id} ({page.width}×{page.height})",
                 use_container_width=True)

    # Download as PDF
    st.markdown("---")
    st.markdown("### 📥 Download Your Scanned PDF")
    scanned_images = pages.to_pil_images()
    pdf_bytes = BytesIO()
    scanned_images[0].save(pdf_bytes, format='PDF', save_all=True, append_images=scanned_images[1:])
    pdf_bytes.seek(0)

    st.download_button(
        label="Download Scanned PDF",
        data=pdf_bytes,
        file_name="scanned_document.pdf",
        mime="application/pdf"
    )


if __name__ == "__main__":
    main()
