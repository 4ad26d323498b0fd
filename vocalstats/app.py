import argparse
import logging
import os
import sys
from typing import List, Optional

from .config import BAND_BOUNDARIES, FRAME_SIZE, NUM_CEPSTRUM_COEF, NUM_MEL_FILTERS, SAMPLING_RATE, FeatureConfig
from .labels import load_emotion_labels, load_tones
from .model import MODEL_PATH, load_feature_table, load_model, predict_label, save_model, train_classifier
from .pipeline import FeaturePipeline, write_csv
from .stats import feature_names

logger = logging.getLogger(__name__)


def setup_logging(level: int = logging.INFO, log_file: Optional[str] = None) -> None:
    """Configure the root logger: stderr, plus `log_file` if given."""
    root = logging.getLogger()
    root.setLevel(level)
    for handler in root.handlers[:]:
        root.removeHandler(handler)

    formatter = logging.Formatter("[%(asctime)s] %(levelname)s [%(name)s:%(funcName)s:%(lineno)d] - %(message)s")
    console = logging.StreamHandler(sys.stderr)
    console.setFormatter(formatter)
    root.addHandler(console)

    if log_file:
        os.makedirs(os.path.dirname(log_file) or ".", exist_ok=True)
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)

    # numba (pulled in by librosa) is chatty at DEBUG
    logging.getLogger("numba").setLevel(logging.WARNING)


def config_from_args(args: argparse.Namespace) -> FeatureConfig:
    return FeatureConfig(
        sample_rate=args.sr,
        frame_size=args.frame_size,
        band_boundaries=tuple(args.bands),
        n_coefficients=args.n_coefs,
        n_filters=args.n_filters,
    )


def cmd_extract(args: argparse.Namespace) -> None:
    cfg = config_from_args(args)
    labels = load_emotion_labels(args.labels) if args.labels else None
    tones = load_tones(args.tones) if args.tones else None
    pipeline = FeaturePipeline(cfg, labels=labels, tones=tones, block_size=args.block_size)
    n = write_csv(pipeline.rows(args.files), args.out, pipeline.fieldnames)
    print(f"已写入 {n} 行特征：{args.out}")


def cmd_schema(args: argparse.Namespace) -> None:
    cfg = config_from_args(args)
    for name in feature_names(cfg, with_tones=args.with_tones):
        print(name)


def cmd_train(args: argparse.Namespace) -> None:
    X, y, names = load_feature_table(args.features, target=args.target)
    print(f"样本数: {len(y)}，特征维度: {X.shape[1]}")
    clf = train_classifier(X, y)
    save_model(args.model_path, clf, names, args.target)
    print(f"已保存模型到: {args.model_path}")


def cmd_predict(args: argparse.Namespace) -> None:
    model = load_model(args.model_path)
    if model is None:
        print("未找到模型，请先运行 train 训练。")
        sys.exit(1)
    cfg = config_from_args(args)
    tones = load_tones(args.tones) if args.tones else None
    pipeline = FeaturePipeline(cfg, tones=tones, block_size=args.block_size)
    for row in pipeline.rows(args.files):
        print(f"{row['recording']}@{row['startId']}: {predict_label(model, row)}")


def _add_feature_args(p: argparse.ArgumentParser) -> None:
    p.add_argument("--sr", type=int, default=SAMPLING_RATE, help="采样率")
    p.add_argument("--frame-size", type=int, default=FRAME_SIZE, help="帧长(采样点)，无重叠")
    p.add_argument("--n-coefs", type=int, default=NUM_CEPSTRUM_COEF, help="倒谱系数个数")
    p.add_argument("--n-filters", type=int, default=NUM_MEL_FILTERS, help="Mel 滤波器个数")
    p.add_argument("--bands", type=float, nargs="+", default=list(BAND_BOUNDARIES), help="频带边界(Hz)，至少两个")


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(description="语音情感特征提取（音高/能量/频带/MFCC 块统计）")
    p.add_argument("--log-level", type=str, default="INFO")
    p.add_argument("--log-file", type=str, default=None)
    sub = p.add_subparsers(dest="cmd", required=True)

    e = sub.add_parser("extract", help="批量提取特征并写入 CSV")
    e.add_argument("files", nargs="+", help="音频文件")
    e.add_argument("--labels", type=str, default=None, help="标签表 file,coarse,binary")
    e.add_argument("--tones", type=str, default=None, help="音名频率表 (TSV)")
    e.add_argument("--block-size", type=int, default=None, help="块长(帧)，默认等于说话区间长度")
    e.add_argument("--out", type=str, default="features.csv")
    _add_feature_args(e)
    e.set_defaults(func=cmd_extract)

    s = sub.add_parser("schema", help="列出特征名")
    s.add_argument("--with-tones", action="store_true")
    _add_feature_args(s)
    s.set_defaults(func=cmd_schema)

    t = sub.add_parser("train", help="训练情感分类器")
    t.add_argument("--features", type=str, required=True, help="extract 输出的 CSV")
    t.add_argument("--target", choices=["coarse", "binary"], default="coarse")
    t.add_argument("--model-path", type=str, default=MODEL_PATH)
    t.set_defaults(func=cmd_train)

    g = sub.add_parser("predict", help="提取特征并分类")
    g.add_argument("files", nargs="+")
    g.add_argument("--tones", type=str, default=None)
    g.add_argument("--block-size", type=int, default=None)
    g.add_argument("--model-path", type=str, default=MODEL_PATH)
    _add_feature_args(g)
    g.set_defaults(func=cmd_predict)

    return p


def main(argv: List[str] = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(getattr(logging, args.log_level.upper(), logging.INFO), args.log_file)
    args.func(args)


if __name__ == "__main__":
    main()
