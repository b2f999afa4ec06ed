"""
Builds the ordered transcode plan for a job.

One encode per scene (image held for the narration length, scaled and padded
to the canonical format), a stream-copy concatenation of those clips, then an
optional music mix and an optional subtitle burn-in. The planner only builds
argument vectors with ffmpeg-python; running them is the orchestrator's job.
"""

import enum
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, List, Mapping, Optional, Sequence, Tuple

import ffmpeg

from scene_montage.config import Settings
from scene_montage.domain import Scene
from scene_montage.formats import CanonicalFormat

if TYPE_CHECKING:
    from scene_montage.workspace import WorkspaceManager

MIX_POLICIES = ("first", "longest")


class StageKind(str, enum.Enum):
    CLIP = "clip"
    CONCAT = "concat"
    MIX = "mix"
    SUBTITLES = "subtitles"


@dataclass(frozen=True)
class Stage:
    name: str
    kind: StageKind
    inputs: Tuple[str, ...]
    output: str
    args: Tuple[str, ...]
    timeout: float
    # (file name, text) pairs the stage expects in the workspace before it runs
    files: Tuple[Tuple[str, str], ...] = ()

    @property
    def parallel(self) -> bool:
        return self.kind is StageKind.CLIP


@dataclass(frozen=True)
class StagePlan:
    stages: Tuple[Stage, ...]

    @property
    def final_output(self) -> str:
        return self.stages[-1].output

    @property
    def clip_stages(self) -> List[Stage]:
        return [stage for stage in self.stages if stage.parallel]

    @property
    def sequential_stages(self) -> List[Stage]:
        return [stage for stage in self.stages if not stage.parallel]


def _finish(stream) -> Tuple[str, ...]:
    return tuple(stream.global_args("-hide_banner", "-nostdin").overwrite_output().get_args())


class CompositionPlanner:
    def __init__(self, settings: Settings):
        self.settings = settings

    def _video_codec_args(self) -> dict:
        s = self.settings
        return {
            "vcodec": "libx264",
            "preset": s.x264_preset,
            "crf": s.x264_crf,
            "pix_fmt": "yuv420p",
            "r": s.frame_rate,
        }

    def _audio_codec_args(self) -> dict:
        s = self.settings
        return {"acodec": "aac", "audio_bitrate": s.audio_bitrate, "ar": s.audio_sample_rate, "ac": 2}

    def clip_stage(self, index: int, scene: Scene, image: Path, narration: Path, fmt: CanonicalFormat, output: Path) -> Stage:
        if not scene.duration or scene.duration <= 0:
            raise ValueError(f"Scene {index} has no measured duration.")

        w, h = fmt.width, fmt.height
        length = f"{scene.duration:.3f}"
        still = ffmpeg.input(str(image), loop=1, framerate=self.settings.frame_rate, t=length)
        voice = ffmpeg.input(str(narration))
        video = (
            still.video
            .filter("scale", w, h, force_original_aspect_ratio="decrease")
            .filter("pad", w, h, "(ow-iw)/2", "(oh-ih)/2")
            .filter("setsar", 1)
            .filter("format", "yuv420p")
        )
        # Pad then cut the narration to the clip length so audio and video end together.
        audio = voice.audio.filter("apad").filter("atrim", duration=length)
        stream = ffmpeg.output(
            video,
            audio,
            str(output),
            t=length,
            movflags="+faststart",
            **self._video_codec_args(),
            **self._audio_codec_args(),
        )
        return Stage(
            name=f"clip-{index:03d}",
            kind=StageKind.CLIP,
            inputs=(image.name, narration.name),
            output=output.name,
            args=_finish(stream),
            timeout=self.settings.clip_timeout,
        )

    def concat_stage(self, clips: Sequence[str], list_file: Path, output: Path) -> Stage:
        # Entries are relative to the list file, which sits next to the clips.
        listing = "".join(f"file '{name}'\n" for name in clips)
        stream = ffmpeg.input(str(list_file), format="concat", safe=0).output(
            str(output), c="copy", movflags="+faststart"
        )
        return Stage(
            name="concat",
            kind=StageKind.CONCAT,
            inputs=tuple(clips),
            output=output.name,
            args=_finish(stream),
            timeout=self.settings.concat_timeout,
            files=((list_file.name, listing),),
        )

    def mix_stage(self, source: Path, music: Path, output: Path, policy: str) -> Stage:
        if policy not in MIX_POLICIES:
            raise ValueError(f"Unknown mix policy: {policy}")

        video = ffmpeg.input(str(source))
        # A looped input never ends, so only the narration-bound policy loops.
        loop = {"stream_loop": -1} if policy == "first" else {}
        bed = ffmpeg.input(str(music), **loop).audio.filter("volume", self.settings.music_volume)
        mixed = ffmpeg.filter([video.audio, bed], "amix", inputs=2, duration=policy, dropout_transition=0)
        stream = ffmpeg.output(
            video.video,
            mixed,
            str(output),
            vcodec="copy",
            movflags="+faststart",
            **self._audio_codec_args(),
        )
        return Stage(
            name="mix",
            kind=StageKind.MIX,
            inputs=(source.name, music.name),
            output=output.name,
            args=_finish(stream),
            timeout=self.settings.mix_timeout,
        )

    def subtitle_stage(self, source: Path, subtitles: Path, output: Path) -> Stage:
        s = self.settings
        style = f"FontSize={s.subtitle_font_size},MarginV={s.subtitle_margin_v},Alignment=2"
        src = ffmpeg.input(str(source))
        video = src.video.filter("subtitles", str(subtitles), force_style=style)
        stream = ffmpeg.output(
            video,
            src.audio,
            str(output),
            acodec="copy",
            movflags="+faststart",
            **self._video_codec_args(),
        )
        return Stage(
            name="subtitles",
            kind=StageKind.SUBTITLES,
            inputs=(source.name, subtitles.name),
            output=output.name,
            args=_finish(stream),
            timeout=s.subtitle_timeout,
        )

    def plan(
        self,
        workspace: "WorkspaceManager",
        scenes: Sequence[Scene],
        assets: Mapping[str, Path],
        fmt: CanonicalFormat,
        output_suffix: str = ".mp4",
        music: Optional[Path] = None,
        subtitles: Optional[Path] = None,
        mix_policy: str = "first",
    ) -> StagePlan:
        """
        Return the stages in execution order. The last stage always writes
        'render<output_suffix>'; earlier intermediates use fixed names.
        """
        if not scenes:
            raise ValueError("Cannot plan a composition without scenes.")

        tail = ["concat"]
        if music is not None:
            tail.append("mix")
        if subtitles is not None:
            tail.append("subtitles")
        final_name = f"render{output_suffix}"

        def target(stage_name: str) -> Path:
            if stage_name == tail[-1]:
                return workspace.artifact(final_name)
            return workspace.artifact(f"{stage_name}.mp4")

        stages: List[Stage] = []
        for index, scene in enumerate(scenes):
            stages.append(
                self.clip_stage(
                    index,
                    scene,
                    assets[scene.image],
                    assets[scene.narration],
                    fmt,
                    workspace.artifact(f"clip-{index:03d}.mp4"),
                )
            )

        current = target("concat")
        stages.append(self.concat_stage([stage.output for stage in stages], workspace.artifact("clips.txt"), current))

        if music is not None:
            mixed = target("mix")
            stages.append(self.mix_stage(current, music, mixed, mix_policy))
            current = mixed

        if subtitles is not None:
            stages.append(self.subtitle_stage(current, subtitles, target("subtitles")))

        return StagePlan(tuple(stages))
