"""
Live recording example.

Records a live HLS stream for two minutes, then writes the recorded
playlists to a local directory as a finalized VOD.

Pipeline:
1. Poll all renditions of the source once per target duration
2. Keep a sliding window of the last 10 minutes
3. Finalize with an endlist once 120 seconds were recorded
4. Save multivariant and media playlists
"""

import logging
import os

from hlsrecorder import HLSRecorder, RecorderConfig

# Configure logging to see hlsrecorder internal logs
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)


def main():
    source = "https://demo.unified-streaming.com/k8s/live/scte35.isml/.m3u8"
    output_dir = "local/recording"

    config = RecorderConfig(record_duration=120, window_size=600, vod=True)
    recorder = HLSRecorder.from_config(source, config)

    def on_segments_added(event):
        primary = event.segments.primary_track()
        print(f"{len(primary.seg_list)} segments recorded, stream type: {event.stream_type.value}")

    def on_error(error):
        print(f"Recording failed: {error}")

    recorder.on_segments_added(on_segments_added)
    recorder.on_error(on_error)

    try:
        recorder.start()
    except KeyboardInterrupt:
        recorder.stop()

    primary = recorder.snapshot().primary_track()
    if primary is None or not primary.finalized:
        print("Recording was not finalized")

    os.makedirs(output_dir, exist_ok=True)
    with open(os.path.join(output_dir, "master.m3u8"), "w", encoding="utf-8") as f:
        f.write(recorder.render_multivariant())

    for bandwidth in recorder.snapshot().video:
        manifest = recorder.render_media(bandwidth)
        if manifest is None:
            continue
        with open(os.path.join(output_dir, f"master{bandwidth}.m3u8"), "w", encoding="utf-8") as f:
            f.write(manifest)
        print(f"Saved master{bandwidth}.m3u8")


if __name__ == "__main__":
    main()
