#!/usr/bin/env python3
"""
vox2brs Web Interface

A simple Gradio-based web UI for converting MagicaVoxel models into
Brickadia saves.

Run with: python app.py
Then open http://localhost:7860 in your browser
"""

import sys
from pathlib import Path
import tempfile

# Add src to path
sys.path.insert(0, str(Path(__file__).parent / "src"))

import gradio as gr
from vox2brs import BrickConverter, BrickOutputMode, ConversionOptions, Vox2BrsError
from vox2brs.logging_config import setup_logging
from vox2brs.preview import render_top_view
from vox2brs.ramps import load_ramp_generator


MODE_CHOICES = {
    "Brick": BrickOutputMode.BRICK,
    "Plate": BrickOutputMode.PLATE,
    "MicroBrick": BrickOutputMode.MICRO_BRICK,
}


def convert_vox(
    vox_file,
    mode: str,
    width: float,
    height: float,
    simplify: bool,
    rampify: bool,
    ramp_generator: str,
    save_name: str
):
    """
    Convert an uploaded .vox file.

    Returns preview image, stats text, and the save path for download.
    """
    if vox_file is None:
        return None, "Please upload a .vox file first.", None

    options = ConversionOptions(
        mode=MODE_CHOICES.get(mode, BrickOutputMode.BRICK),
        width=int(width) if width else None,
        height=int(height) if height else None,
        simplify=simplify,
        rampify=rampify,
    ).normalized()

    try:
        factory = None
        if options.rampify and ramp_generator:
            factory = load_ramp_generator(ramp_generator.strip())

        converter = BrickConverter(options, ramp_generator_factory=factory)
        converter.load_vox(vox_file)
        converter.convert()

        export_dir = tempfile.mkdtemp(prefix="vox2brs_")
        save_path = str(Path(export_dir) / f"{save_name or 'output'}.json")
        converter.export_json(save_path)
    except Vox2BrsError as e:
        return None, f"**Conversion failed:** {e}", None

    stats = converter.get_stats()
    preview = render_top_view(converter.save, output_size=512)

    stats_text = f"""## Conversion Complete!

| Metric | Value |
|--------|-------|
| Models | {stats['model_count']} |
| Instances | {stats['instance_count']} |
| Voxels | {stats['voxel_count']:,} |
| Ramps | {stats['ramp_count']:,} |
| Bricks | {stats['brick_count']:,} |
| Time | {stats['elapsed']:.2f}s |

**Settings:** {options.mode.value}, Simplify={options.simplify}, Rampify={options.rampify}
"""

    return preview, stats_text, save_path


def sync_flags(rampify: bool, simplify: bool, mode: str):
    """Rampify forces simplify on and rules out micro bricks."""
    if rampify:
        if mode == "MicroBrick":
            mode = "Brick"
        return gr.update(value=True, interactive=False), gr.update(value=mode)
    return gr.update(value=simplify, interactive=True), gr.update(value=mode)


# Build the Gradio interface
with gr.Blocks(title="vox2brs") as app:

    gr.Markdown("""
    # vox2brs
    ### Convert .vox files into Brickadia saves!

    Upload a MagicaVoxel model, adjust the settings, and download your save.
    """)

    with gr.Row():
        with gr.Column(scale=1):
            gr.Markdown("### Configuration")

            vox_input = gr.File(
                label="VOX File",
                file_types=[".vox"],
                type="filepath"
            )

            save_name = gr.Textbox(value="output", label="Save Name")

            rampify = gr.Checkbox(
                value=False,
                label="Rampify the result. NOTE: Disables Microbricks as an option."
            )

            ramp_generator = gr.Textbox(
                label="Ramp generator (module:factory)",
                placeholder="my_ramps:Rampifier"
            )

            simplify = gr.Checkbox(
                value=False,
                label="Simplify: optimizes bricks of the same color conservatively."
            )

            mode = gr.Dropdown(
                choices=list(MODE_CHOICES),
                value="Brick",
                label="Brick Type"
            )

            width = gr.Number(value=1, precision=0, minimum=1, label="Width")
            height = gr.Number(value=1, precision=0, minimum=1, label="Height")

            convert_btn = gr.Button("Convert", variant="primary")

        with gr.Column(scale=2):
            gr.Markdown("### Top View")

            preview_output = gr.Image(label="Preview", type="pil")

            stats_output = gr.Markdown(
                value="Upload a model and click 'Convert' to see results."
            )

        with gr.Column(scale=1):
            gr.Markdown("### Download")

            save_output = gr.File(label="Save (JSON)")

    rampify.change(
        fn=sync_flags,
        inputs=[rampify, simplify, mode],
        outputs=[simplify, mode]
    )

    convert_btn.click(
        fn=convert_vox,
        inputs=[
            vox_input,
            mode,
            width,
            height,
            simplify,
            rampify,
            ramp_generator,
            save_name
        ],
        outputs=[preview_output, stats_output, save_output]
    )


if __name__ == "__main__":
    setup_logging()

    print("\n" + "="*60)
    print("vox2brs Web Interface")
    print("="*60)
    print("\nStarting server...")
    print("Open http://localhost:7860 in your browser\n")

    app.launch(
        server_name="0.0.0.0",
        server_port=7860,
        share=False
    )
